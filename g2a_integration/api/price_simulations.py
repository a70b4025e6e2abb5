# g2a_integration/api/price_simulations.py
from typing import Any, Dict, List, Optional, Union

from g2a_integration.api.base import BaseAPI
from g2a_integration.batch.batch_operations import BatchOperations, BatchResult
from g2a_integration.schemas import PriceSimulation, PriceSimulationRequest


class PriceSimulationsAPI(BaseAPI):
    scope = "/prices"

    def __init__(self, http_client, executor, batch_operations: Optional[BatchOperations] = None):
        super().__init__(http_client, executor)
        self.batch_operations = batch_operations or BatchOperations(chunk_size=10, max_concurrency=3)

    async def simulate(self, product_id: str, price: float, country: Optional[str] = None) -> PriceSimulation:
        """Ask the partner what a listing at ``price`` would earn and cost the buyer."""
        request = self._validate(
            PriceSimulationRequest,
            {"product_id": product_id, "price": price, "country": country},
            "simulate",
        )
        self.logger.info("Simulating price", product_id=product_id, price=price, country=country)

        data = await self._request("simulate", "GET", "/prices/simulations", params=request.to_payload())
        simulation = self._parse(PriceSimulation, data, "simulate")

        self.logger.info(
            "Price simulation completed",
            product_id=product_id,
            price=price,
            income=simulation.income,
            final_price=simulation.final_price
        )
        return simulation

    async def batch_simulate(self,
                             requests: List[Union[PriceSimulationRequest, Dict[str, Any]]]) -> BatchResult:
        """
        Simulate many prices through the batch executor.

        ``successes`` holds ``(request, simulation)`` pairs in input order;
        ``failures`` carry the input index of each failed request.
        """
        self.logger.info("Batch simulating prices", count=len(requests))

        async def simulate_one(raw, index):
            request = self._validate(PriceSimulationRequest, raw, "batch_simulate")
            simulation = await self.simulate(request.product_id, request.price, request.country)
            return request, simulation

        return await self.batch_operations.execute(requests, simulate_one, self._operation("batch_simulate"))
