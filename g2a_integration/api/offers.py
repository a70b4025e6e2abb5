# g2a_integration/api/offers.py
from typing import Any, Dict, Optional, Union

from g2a_integration.api.base import BaseAPI
from g2a_integration.schemas import (
    CreateOfferRequest,
    CreateOfferResponse,
    InventoryKind,
    InventoryPayload,
    InventoryUploadResponse,
    Offer,
    OfferFilters,
    OffersPage,
    UpdateOfferRequest,
)


class OffersAPI(BaseAPI):
    """Offers on the Import API. Creation is asynchronous and returns a job id."""

    scope = "/offers"

    async def create(self, payload: Union[CreateOfferRequest, Dict[str, Any]]) -> str:
        request = self._validate(CreateOfferRequest, payload, "create")
        self.logger.info("Creating offer", offer_type=request.offer_type.value, product_id=request.product_id)

        data = await self._request("create", "POST", "/offers", json=request.to_payload(), ok_statuses=(200, 201))
        job_id = self._parse(CreateOfferResponse, data, "create").job_id

        self.logger.info("Offer creation initiated", job_id=job_id)
        return job_id

    async def get(self, offer_id: str) -> Offer:
        data = await self._request("get", "GET", f"/offers/{offer_id}")
        offer = self._parse(Offer, data, "get")
        self.logger.debug("Offer fetched", offer_id=offer_id, status=offer.status)
        return offer

    async def list(self, product_id: Optional[str] = None, status: Optional[str] = None,
                   offer_type: Optional[str] = None, active: Optional[bool] = None,
                   page: Optional[int] = None, per_page: Optional[int] = None) -> OffersPage:
        filters = self._validate(OfferFilters, {
            "product_id": product_id,
            "status": status,
            "offer_type": offer_type,
            "active": active,
            "page": page,
            "per_page": per_page,
        }, "list")
        params = filters.to_payload()
        self.logger.info("Fetching offers list", filters=params)

        data = await self._request("list", "GET", "/offers", params=params)
        result = self._parse(OffersPage, data, "list")
        self.logger.info("Offers fetched", count=len(result.data), total=result.meta.total if result.meta else 0)
        return result

    async def update(self, offer_id: str, payload: Union[UpdateOfferRequest, Dict[str, Any]]) -> Offer:
        request = self._validate(UpdateOfferRequest, payload, "update")
        body = request.to_payload()
        self.logger.info("Updating offer", offer_id=offer_id, updates=sorted(body))

        data = await self._request("update", "PATCH", f"/offers/{offer_id}", json=body)
        return self._parse(Offer, data, "update")

    async def add_inventory(self, offer_id: str, inventory: InventoryPayload) -> str:
        """Upload keys or a key file to an offer; returns the collection uuid."""
        self.logger.info(
            "Adding inventory to offer",
            offer_id=offer_id,
            kind=inventory.kind.value,
            size=inventory.size
        )
        path = f"/offers/{offer_id}/inventory"
        if inventory.kind == InventoryKind.KEYS:
            data = await self._request(
                "add_inventory", "POST", path, json={"keys": inventory.keys}, ok_statuses=(200, 201)
            )
        else:
            data = await self._request(
                "add_inventory", "POST", path,
                files={"file": (inventory.file_name, inventory.content)},
                ok_statuses=(200, 201),
            )

        collection_uuid = self._parse(InventoryUploadResponse, data, "add_inventory").collection_uuid
        self.logger.info("Inventory added", offer_id=offer_id, collection_uuid=collection_uuid)
        return collection_uuid
