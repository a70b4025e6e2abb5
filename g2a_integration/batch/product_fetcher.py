# g2a_integration/batch/product_fetcher.py
import asyncio
import time
from typing import Any, Callable, Dict, List, Optional

from g2a_integration.api.products import FilterInput, ProductsAPI
from g2a_integration.batch.batch_operations import BatchFailure, BatchOperations, BatchResult
from g2a_integration.exceptions import G2AError, G2AErrorCode
from g2a_integration.schemas import ProductFilters
from g2a_integration.utils.enhanced_logging import get_logger

ProgressCallback = Callable[[int, int, int], None]

MAX_CONSECUTIVE_PAGE_FAILURES = 3


class BatchProductFetcher:
    """Bulk product retrieval: by id list, or page by page over a filter."""

    page_delay = 0.2
    error_delay = 2.0

    def __init__(self, products_api: ProductsAPI, chunk_size: int = 10, max_concurrency: int = 3):
        self.products_api = products_api
        self.batch_operations = BatchOperations(chunk_size, max_concurrency, continue_on_error=True)
        self.logger = get_logger("batch.product_fetcher")

    async def fetch_by_ids(self, product_ids: List[str]) -> BatchResult:
        self.logger.info("Batch fetching products by IDs", count=len(product_ids))

        async def fetch_one(product_id, index):
            self.logger.debug("Fetching product", product_id=product_id, index=index)
            return await self.products_api.get(product_id)

        return await self.batch_operations.execute(product_ids, fetch_one, "BatchProductFetcher.fetch_by_ids")

    async def fetch_with_filters(self, filters: FilterInput = None, max_pages: int = 0,
                                 on_progress: Optional[ProgressCallback] = None) -> BatchResult:
        """
        Page through products matching ``filters``; ``max_pages=0`` means no cap.

        A failed page is recorded with the page number as its index. An open
        circuit stops pagination at once. With a page cap any failure stops
        it; without one the next page is tried after ``error_delay`` seconds,
        up to three failures in a row.
        """
        base_filters = self.products_api._validate(ProductFilters, filters, "fetch_with_filters")

        self.logger.info(
            "Batch fetching products with filters",
            filters=base_filters.to_params(),
            max_pages=max_pages or "unlimited"
        )

        start_time = time.perf_counter()
        products: List[Dict[str, Any]] = []
        failures: List[BatchFailure] = []
        page = 1
        total = 0
        consecutive_failures = 0

        while max_pages == 0 or page <= max_pages:
            try:
                response = await self.products_api.list(base_filters.with_page(page))
            except G2AError as e:
                failures.append(BatchFailure(index=page, error=e))
                consecutive_failures += 1
                self.logger.warning("Failed to fetch page", page=page, error=e.message, error_code=e.code.value)

                if e.code == G2AErrorCode.CIRCUIT_OPEN:
                    self.logger.error("Circuit breaker is open, stopping pagination", page=page)
                    break
                if max_pages > 0:
                    break
                if consecutive_failures >= MAX_CONSECUTIVE_PAGE_FAILURES:
                    self.logger.error(
                        "Too many consecutive page failures, stopping pagination",
                        page=page,
                        consecutive_failures=consecutive_failures
                    )
                    break
                page += 1
                await asyncio.sleep(self.error_delay)
                continue

            consecutive_failures = 0
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

        result = BatchResult(
            successes=products,
            failures=failures,
            total_processed=len(products) + len(failures),
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )
        self.logger.info(
            "Batch fetch completed",
            total_pages=page,
            total_fetched=len(products),
            expected_total=total,
            failures=len(failures),
            duration_ms=round(result.duration_ms, 2)
        )
        return result

    async def fetch_updated_since(self, updated_at_from: str, max_pages: int = 0) -> BatchResult:
        """``updated_at_from`` uses the partner's ``yyyy-mm-dd hh:mm:ss`` format."""
        self.logger.info("Fetching products updated since", updated_at_from=updated_at_from, max_pages=max_pages)
        return await self.fetch_with_filters({"updatedAtFrom": updated_at_from}, max_pages)

    async def fetch_all(self, filters: FilterInput = None,
                        on_progress: Optional[ProgressCallback] = None) -> BatchResult:
        return await self.fetch_with_filters(filters, 0, on_progress)
