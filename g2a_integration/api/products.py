# g2a_integration/api/products.py
"""
Products, Export API catalog access.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

from g2a_integration.api.base import BaseAPI
from g2a_integration.exceptions import G2AError, G2AErrorCode
from g2a_integration.schemas import ProductFilters, ProductListResponse

ProgressCallback = Callable[[int, int, int], None]
FilterInput = Union[ProductFilters, Dict[str, Any], None]


class ProductsAPI(BaseAPI):
    scope = "/products"
    page_delay = 0.2

    async def list(self, filters: FilterInput = None) -> ProductListResponse:
        """Fetch one page of products."""
        filters = self._validate(ProductFilters, filters, "list")
        params = filters.to_params()
        self.logger.info("Fetching products list", filters=params)

        data = await self._request("list", "GET", "/products", params=params)
        result = self._parse(ProductListResponse, data, "list")

        self.logger.info(
            "Products fetched",
            total=result.total,
            page=result.page,
            count=len(result.docs)
        )
        return result

    async def get(self, product_id: str) -> Dict[str, Any]:
        """
        Raises:
            G2AError: PRODUCT_NOT_FOUND for an unknown id
        """
        def on_error(response: httpx.Response):
            if response.status_code == 404:
                raise G2AError(
                    G2AErrorCode.PRODUCT_NOT_FOUND,
                    f"Product not found: {product_id}",
                    http_status=404,
                    endpoint=self.scope,
                    context={"product_id": product_id},
                )

        self.logger.debug("Fetching product", product_id=product_id)
        product = await self._request("get", "GET", f"/products/{product_id}", on_error=on_error)
        self.logger.debug("Product fetched", product_id=product_id, name=product.get("name"))
        return product

    async def batch_get(self, product_ids: List[str]) -> List[Dict[str, Any]]:
        """Fetch products one by one; failures are logged and skipped."""
        self.logger.info("Batch fetching products", count=len(product_ids))
        products = []
        errors = []

        for product_id in product_ids:
            try:
                products.append(await self.get(product_id))
            except G2AError as e:
                errors.append({"product_id": product_id, "error": e.message, "code": e.code.value})

        self.logger.info(
            "Batch fetch completed",
            total_requested=len(product_ids),
            success_count=len(products),
            error_count=len(errors)
        )
        if errors:
            self.logger.warning("Some products failed to fetch", errors=errors)
        return products

    async def search(self, query: str, filters: FilterInput = None) -> ProductListResponse:
        """Case-insensitive name match over one list page."""
        self.logger.info("Searching products", query=query)
        response = await self.list(filters)
        needle = query.lower()
        docs = [product for product in response.docs if needle in str(product.get("name", "")).lower()]

        self.logger.info("Search completed", query=query, total_results=len(docs), original_total=response.total)
        return ProductListResponse(total=len(docs), page=response.page, docs=docs)

    async def get_all(self, filters: FilterInput = None,
                      on_progress: Optional[ProgressCallback] = None) -> List[Dict[str, Any]]:
        """
        Page through the whole catalog.

        Stops once the accumulated count reaches the reported total or a page
        comes back empty. ``on_progress(page, total, accumulated)`` runs after
        each non-empty page.
        """
        base_filters = self._validate(ProductFilters, filters, "get_all")
        self.logger.info("Fetching all products with pagination", filters=base_filters.to_params())

        products: List[Dict[str, Any]] = []
        page = 1
        total = 0

        while True:
            response = await self.list(base_filters.with_page(page))
            if not response.docs:
                break

            products.extend(response.docs)
            total = response.total
            self.logger.debug(
                "Fetched page",
                page=page,
                count=len(response.docs),
                total=total,
                accumulated=len(products)
            )
            if on_progress is not None:
                on_progress(page, total, len(products))

            if len(products) >= total:
                break
            page += 1
            await asyncio.sleep(self.page_delay)

        self.logger.info("All products fetched", total_pages=page, total_products=len(products), expected_total=total)
        return products
