# g2a_integration/api/bestsellers.py
from typing import Optional

from g2a_integration.api.base import BaseAPI
from g2a_integration.schemas import BestsellerFilters, BestsellersPage


class BestsellersAPI(BaseAPI):
    scope = "/bestsellers"

    async def list(self, category: Optional[str] = None, platform: Optional[str] = None,
                   page: Optional[int] = None, per_page: Optional[int] = None) -> BestsellersPage:
        filters = self._validate(BestsellerFilters, {
            "category": category,
            "platform": platform,
            "page": page,
            "per_page": per_page,
        }, "list")
        params = filters.to_payload()
        self.logger.info("Fetching bestsellers", filters=params)

        data = await self._request("list", "GET", "/bestsellers", params=params)
        result = self._parse(BestsellersPage, data, "list")
        self.logger.info("Bestsellers fetched", count=len(result.data), total=result.meta.total if result.meta else 0)
        return result
