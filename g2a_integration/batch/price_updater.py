# g2a_integration/batch/price_updater.py
"""
Batch price simulation with delta detection.

An update whose ``new_price`` equals the known ``current_price`` is skipped
before any request is made, so only changed prices reach the partner.
Failure indices always name the position in the caller's input list.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from g2a_integration.batch.batch_operations import BatchFailure, BatchOperations, BatchResult, remap_failures
from g2a_integration.exceptions import ValidationError
from g2a_integration.schemas import PriceSimulation
from g2a_integration.utils.enhanced_logging import get_logger

DEFAULT_MARKUP = 0.05


@dataclass
class PriceUpdateRequest:
    product_id: str
    new_price: float
    current_price: Optional[float] = None
    country: Optional[str] = None

    @classmethod
    def coerce(cls, value: Union["PriceUpdateRequest", Dict[str, Any]]) -> "PriceUpdateRequest":
        if isinstance(value, cls):
            return value
        return cls(
            product_id=value["product_id"],
            new_price=value["new_price"],
            current_price=value.get("current_price"),
            country=value.get("country"),
        )

    @property
    def changed(self) -> bool:
        return self.current_price is None or self.new_price != self.current_price


@dataclass
class PriceUpdateResult:
    product_id: str
    new_price: float
    simulation: PriceSimulation
    old_price: Optional[float] = None
    changed: bool = True
    index: Optional[int] = None


@dataclass
class PriceRecommendation:
    product_id: str
    current_price: float
    recommended_price: float

    @property
    def increase(self) -> float:
        return self.recommended_price - self.current_price


@dataclass
class PriceBatchResult(BatchResult):
    skipped_count: int = 0


Validator = Callable[[PriceUpdateResult], bool]


class BatchPriceUpdater:
    def __init__(self, price_simulations_api, chunk_size: int = 10, max_concurrency: int = 3):
        self.price_simulations_api = price_simulations_api
        self.batch_operations = BatchOperations(chunk_size, max_concurrency, continue_on_error=True)
        self.logger = get_logger("batch.price_updater")

    async def simulate_prices(self, updates: List[Union[PriceUpdateRequest, Dict[str, Any]]]) -> PriceBatchResult:
        """
        Simulate only the changed prices. Failure indices and
        ``PriceUpdateResult.index`` refer to the position in ``updates``.
        """
        requests = [PriceUpdateRequest.coerce(update) for update in updates]
        positions = [i for i, request in enumerate(requests) if request.changed]
        changed = [requests[i] for i in positions]
        skipped = len(requests) - len(changed)

        self.logger.info("Batch simulating price updates", count=len(requests))
        if skipped:
            self.logger.info("Filtered out unchanged prices", total=len(requests), changed=len(changed), skipped=skipped)

        async def simulate_one(request: PriceUpdateRequest, index: int) -> PriceUpdateResult:
            self.logger.debug(
                "Simulating price",
                index=positions[index],
                product_id=request.product_id,
                old_price=request.current_price,
                new_price=request.new_price
            )
            simulation = await self.price_simulations_api.simulate(
                request.product_id, request.new_price, request.country
            )
            return PriceUpdateResult(
                product_id=request.product_id,
                new_price=request.new_price,
                simulation=simulation,
                old_price=request.current_price,
                index=positions[index],
            )

        result = await self.batch_operations.execute(changed, simulate_one, "BatchPriceUpdater.simulate_prices")
        return PriceBatchResult(
            successes=result.successes,
            failures=remap_failures(result.failures, positions),
            total_processed=result.total_processed,
            duration_ms=result.duration_ms,
            skipped_count=skipped,
        )

    async def apply_prices_with_validation(self, updates: List[Union[PriceUpdateRequest, Dict[str, Any]]],
                                           validator: Optional[Validator] = None) -> PriceBatchResult:
        """
        Simulate, then keep only results the validator accepts.

        Rejected results become failures carrying the same input index as
        the update they came from, merged in input order with the
        simulation failures.
        """
        self.logger.info("Applying price updates with validation", count=len(updates))
        simulated = await self.simulate_prices(updates)

        valid: List[PriceUpdateResult] = []
        rejected: List[BatchFailure] = []
        for result in simulated.successes:
            if validator is None or validator(result):
                valid.append(result)
            else:
                rejected.append(BatchFailure(
                    index=result.index,
                    error=ValidationError(
                        f"Price validation failed for product {result.product_id}",
                        field="new_price",
                        value=result.new_price,
                    ),
                ))

        self.logger.info(
            "Price validation completed",
            total=len(simulated.successes),
            valid=len(valid),
            invalid=len(rejected)
        )
        failures = sorted(simulated.failures + rejected, key=lambda failure: failure.index)
        return PriceBatchResult(
            successes=valid,
            failures=failures,
            total_processed=len(valid) + len(failures),
            duration_ms=simulated.duration_ms,
            skipped_count=simulated.skipped_count,
        )

    async def get_recommended_prices(self, product_ids: List[str], current_prices: Dict[str, float],
                                     markup: float = DEFAULT_MARKUP) -> BatchResult:
        """Flat markup over the current price; no partner call is made."""
        self.logger.info("Getting recommended prices", count=len(product_ids), markup=markup)

        async def recommend(product_id: str, index: int) -> PriceRecommendation:
            current = current_prices.get(product_id, 0.0)
            return PriceRecommendation(
                product_id=product_id,
                current_price=current,
                recommended_price=round(current * (1 + markup), 2),
            )

        return await self.batch_operations.execute(
            product_ids, recommend, "BatchPriceUpdater.get_recommended_prices"
        )
