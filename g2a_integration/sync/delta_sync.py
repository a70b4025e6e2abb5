# g2a_integration/sync/delta_sync.py
"""
Incremental catalog sync driven by a ``updatedAt`` watermark.

A fetched product is "new" when its own ``createdAt`` falls after the
watermark and "updated" otherwise; no local snapshot is consulted. Both
sides are compared as whole-second UTC datetimes.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from g2a_integration.batch.batch_operations import BatchFailure
from g2a_integration.batch.product_fetcher import BatchProductFetcher
from g2a_integration.exceptions import ValidationError
from g2a_integration.utils.enhanced_logging import get_logger
from g2a_integration.utils.time_utils import format_g2a_timestamp, hours_ago, parse_g2a_timestamp, utc_now

DEFAULT_LOOKBACK_HOURS = 24
DEFAULT_MAX_PAGES = 50


@dataclass
class DeltaSyncResult:
    new_products: List[Dict[str, Any]] = field(default_factory=list)
    updated_products: List[Dict[str, Any]] = field(default_factory=list)
    failures: List[BatchFailure] = field(default_factory=list)
    last_sync_timestamp: str = ""
    duration_ms: float = 0.0

    @property
    def total_fetched(self) -> int:
        return len(self.new_products) + len(self.updated_products)

    @property
    def products(self) -> List[Dict[str, Any]]:
        return self.new_products + self.updated_products


class DeltaSync:
    def __init__(self, fetcher: BatchProductFetcher, clock: Callable[[], datetime] = utc_now):
        self.fetcher = fetcher
        self._clock = clock
        self.logger = get_logger("sync.delta_sync")

    def default_watermark(self) -> str:
        return format_g2a_timestamp(hours_ago(DEFAULT_LOOKBACK_HOURS, now=self._clock()))

    async def sync(self, last_sync_timestamp: Optional[str] = None,
                   max_pages: int = DEFAULT_MAX_PAGES) -> DeltaSyncResult:
        start_time = time.perf_counter()
        watermark_text = last_sync_timestamp or self.default_watermark()
        watermark = parse_g2a_timestamp(watermark_text)
        if watermark is None:
            raise ValidationError(
                f"Invalid sync watermark: {watermark_text!r}", field="updated_at_from", value=watermark_text
            )
        watermark_text = format_g2a_timestamp(watermark)
        next_watermark = format_g2a_timestamp(self._clock())

        self.logger.info("Starting delta sync", last_sync=watermark_text, max_pages=max_pages)
        fetched = await self.fetcher.fetch_updated_since(watermark_text, max_pages)

        result = DeltaSyncResult(failures=fetched.failures, last_sync_timestamp=next_watermark)
        for product in fetched.successes:
            created_at = parse_g2a_timestamp(product.get("createdAt"))
            if created_at is not None and created_at > watermark:
                result.new_products.append(product)
            else:
                result.updated_products.append(product)

        result.duration_ms = (time.perf_counter() - start_time) * 1000
        self.logger.info(
            "Delta sync completed",
            total_fetched=result.total_fetched,
            new_products=len(result.new_products),
            updated_products=len(result.updated_products),
            page_failures=len(result.failures),
            duration_ms=round(result.duration_ms, 2)
        )
        return result
