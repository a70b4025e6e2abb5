"""
Tests for the batch executor and the batch helpers built on it.
"""

import asyncio
import json

import httpx
import pytest

from g2a_integration.api import OrdersAPI, ProductsAPI
from g2a_integration.batch import (
    BatchOperations,
    BatchOrderCreator,
    BatchPriceUpdater,
    BatchProductFetcher,
    PriceUpdateRequest,
)
from g2a_integration.exceptions import BatchPartialFailureError, G2AErrorCode
from g2a_integration.schemas import PriceSimulation


async def fail_on(bad_indices, item, index):
    await asyncio.sleep(0)
    if index in bad_indices:
        raise ValueError(f"item {item} failed")
    return item * 10


class TestBatchOperations:
    """Chunking, concurrency and failure indices."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("chunk_size", [1, 3, 10])
    async def test_indices_are_global(self, chunk_size):
        batch = BatchOperations(chunk_size=chunk_size, max_concurrency=2)

        result = await batch.execute(list(range(10)), lambda item, index: fail_on({2, 7}, item, index), "test")

        assert result.failed_indices == [2, 7]
        assert result.successes == [0, 10, 30, 40, 50, 60, 80, 90]
        assert result.total_processed == 10

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        batch = BatchOperations(chunk_size=1, max_concurrency=3)
        running = 0
        peak = 0

        async def track(item, index):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return item

        result = await batch.execute(list(range(12)), track, "test")

        assert result.success_count == 12
        assert peak == 3

    @pytest.mark.asyncio
    async def test_empty_input(self):
        result = await BatchOperations().execute([], lambda item, index: fail_on(set(), item, index), "test")

        assert result.total_processed == 0
        assert result.to_dict()["failures"] == []

    @pytest.mark.asyncio
    async def test_stop_on_first_error(self):
        batch = BatchOperations(chunk_size=2, max_concurrency=1, continue_on_error=False)

        result = await batch.execute(list(range(10)), lambda item, index: fail_on({3}, item, index), "test")

        assert result.successes == [0, 10, 20]
        assert result.failed_indices == [3]
        assert result.total_processed == 4

    @pytest.mark.asyncio
    async def test_strict_raises_partial_failure(self):
        batch = BatchOperations(chunk_size=2)

        with pytest.raises(BatchPartialFailureError) as exc_info:
            await batch.execute_strict([1, 2, 3], lambda item, index: fail_on({1}, item, index), "test")

        error = exc_info.value
        assert error.code == G2AErrorCode.BATCH_PARTIAL_FAILURE
        assert error.success_count == 2
        assert error.failure_count == 1
        assert error.context["failures"][0]["index"] == 1

    @pytest.mark.asyncio
    async def test_strict_returns_successes(self):
        batch = BatchOperations(chunk_size=2)

        assert await batch.execute_strict([1, 2], lambda item, index: fail_on(set(), item, index), "test") == [10, 20]

    def test_sizes_must_be_positive(self):
        with pytest.raises(ValueError):
            BatchOperations(chunk_size=0)
        with pytest.raises(ValueError):
            BatchOperations(max_concurrency=0)


@pytest.fixture
def fetcher(make_api):
    products_api = make_api(ProductsAPI)
    fetcher = BatchProductFetcher(products_api, chunk_size=2, max_concurrency=2)
    fetcher.page_delay = 0
    fetcher.error_delay = 0
    return fetcher


def page(page_number, ids, total):
    return 200, {"total": total, "page": page_number, "docs": [{"id": product_id} for product_id in ids]}


class TestBatchProductFetcher:
    """Id-list fan-out and filtered pagination."""

    @pytest.mark.asyncio
    async def test_fetch_by_ids(self, router, fetcher):
        router.add("GET", "/products/a", (200, {"id": "a"}))
        router.add("GET", "/products/b", (404, {}))
        router.add("GET", "/products/c", (200, {"id": "c"}))

        result = await fetcher.fetch_by_ids(["a", "b", "c"])

        assert [p["id"] for p in result.successes] == ["a", "c"]
        assert result.failed_indices == [1]
        assert result.failures[0].error.code == G2AErrorCode.PRODUCT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_failed_page_is_skipped(self, router, fetcher):
        router.add(
            "GET", "/products",
            page(1, ["a", "b"], 6),
            (500, {"message": "Internal error"}),
            page(3, ["e", "f"], 6),
            page(4, [], 6),
        )

        result = await fetcher.fetch_all()

        assert [p["id"] for p in result.successes] == ["a", "b", "e", "f"]
        assert result.failed_indices == [2]

    @pytest.mark.asyncio
    async def test_three_failures_in_a_row_stop(self, router, fetcher):
        router.add("GET", "/products", page(1, ["a"], 10), (500, {"message": "Internal error"}))

        result = await fetcher.fetch_all()

        assert [p["id"] for p in result.successes] == ["a"]
        assert result.failed_indices == [2, 3, 4]
        assert router.calls("GET", "/products") == 4

    @pytest.mark.asyncio
    async def test_page_cap_stops_on_failure(self, router, fetcher):
        router.add("GET", "/products", page(1, ["a"], 10), (500, {"message": "Internal error"}), page(3, ["c"], 10))

        result = await fetcher.fetch_with_filters(max_pages=5)

        assert result.failed_indices == [2]
        assert router.calls("GET", "/products") == 2

    @pytest.mark.asyncio
    async def test_page_cap(self, router, fetcher):
        router.add("GET", "/products", page(1, ["a"], 10), page(2, ["b"], 10), page(3, ["c"], 10))

        result = await fetcher.fetch_with_filters(max_pages=2)

        assert [p["id"] for p in result.successes] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_open_circuit_stops_pagination(self, router, make_api, make_config, make_executor):
        config = make_config(rate_limiting={"enabled": False}, circuit_breaker={"failure_threshold": 1})
        api = make_api(ProductsAPI, config=config, executor=make_executor(config))
        fetcher = BatchProductFetcher(api)
        fetcher.error_delay = 0
        router.add("GET", "/products", (503, {"message": "Unavailable"}))

        result = await fetcher.fetch_all()

        assert [failure.error.code for failure in result.failures] == [
            G2AErrorCode.API_ERROR, G2AErrorCode.CIRCUIT_OPEN,
        ]
        assert router.calls("GET", "/products") == 1

    @pytest.mark.asyncio
    async def test_updated_since_filter(self, router, fetcher):
        router.add("GET", "/products", page(1, ["a"], 1))

        await fetcher.fetch_updated_since("2024-03-01 10:00:00")

        assert router.requests[-1].url.params["updatedAtFrom"] == "2024-03-01 10:00:00"


def order_route(failures_by_product):
    """POST /order handler failing each product a set number of times."""
    attempts = {}

    def handler(request):
        product_id = json.loads(request.content)["product_id"]
        attempts[product_id] = attempts.get(product_id, 0) + 1
        if attempts[product_id] <= failures_by_product.get(product_id, 0):
            return httpx.Response(400, json={"message": "Product unavailable"})
        return httpx.Response(200, json={"order_id": f"ord-{product_id}", "price": 5.0, "currency": "EUR"})

    return handler


class TestBatchOrderCreator:
    """Bulk order placement and payment."""

    @pytest.mark.asyncio
    async def test_create_orders_keeps_client_ids(self, router, make_api):
        router.add("POST", "/order", order_route({"p2": 99}))
        creator = BatchOrderCreator(make_api(OrdersAPI))

        result = await creator.create_orders([
            {"product_id": "p1", "client_order_id": "c-1"},
            {"product_id": "p2", "client_order_id": "c-2"},
            {"product_id": "p3", "client_order_id": "c-3"},
        ])

        assert [(r.order.order_id, r.client_order_id) for r in result.successes] == [
            ("ord-p1", "c-1"), ("ord-p3", "c-3"),
        ]
        assert result.failed_indices == [1]

    @pytest.mark.asyncio
    async def test_retry_maps_indices_to_input(self, router, make_api):
        router.add("POST", "/order", order_route({"p2": 1, "p4": 99}))
        creator = BatchOrderCreator(make_api(OrdersAPI), chunk_size=2)

        result = await creator.create_orders_with_retry(
            [{"product_id": f"p{i}"} for i in range(1, 6)], max_retries=2
        )

        assert sorted(r.order.order_id for r in result.successes) == ["ord-p1", "ord-p2", "ord-p3", "ord-p5"]
        assert result.failed_indices == [3]
        assert result.total_processed == 5

    @pytest.mark.asyncio
    async def test_create_and_pay(self, router, make_api):
        router.add("POST", "/order", order_route({}))
        router.add("PUT", "/order/pay/ord-p1", (200, {"status": True, "transaction_id": "tx-1"}))
        router.add("PUT", "/order/pay/ord-p2", (403, {"code": "ORD112"}))
        creator = BatchOrderCreator(make_api(OrdersAPI))

        result = await creator.create_and_pay_orders([{"product_id": "p1"}, {"product_id": "p2"}])

        assert [(paid.order.order.order_id, paid.transaction_id) for paid in result.successes] == [("ord-p1", "tx-1")]
        assert result.failures[0].error.error_code == "ORD112"

    @pytest.mark.asyncio
    async def test_create_and_pay_failures_use_input_positions(self, router, make_api):
        router.add("POST", "/order", order_route({"p1": 99}))
        router.add("PUT", "/order/pay/ord-p2", (200, {"status": True, "transaction_id": "tx-2"}))
        router.add("PUT", "/order/pay/ord-p3", (403, {"code": "ORD112"}))
        creator = BatchOrderCreator(make_api(OrdersAPI))

        result = await creator.create_and_pay_orders(
            [{"product_id": "p1"}, {"product_id": "p2"}, {"product_id": "p3"}]
        )

        assert result.failed_indices == [0, 2]
        assert result.failures[1].error.error_code == "ORD112"
        assert [paid.transaction_id for paid in result.successes] == ["tx-2"]
        assert result.total_processed == 3


class StubPriceSimulations:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    async def simulate(self, product_id, price, country=None):
        self.calls.append(product_id)
        if product_id in self.failing:
            raise ValueError("simulation failed")
        return PriceSimulation(income=round(price * 0.9, 2), final_price=round(price * 1.1, 2))


class TestBatchPriceUpdater:
    """Delta detection and validation of simulated prices."""

    @pytest.mark.asyncio
    async def test_unchanged_prices_are_skipped(self):
        api = StubPriceSimulations()
        updater = BatchPriceUpdater(api)

        result = await updater.simulate_prices([
            {"product_id": "p1", "new_price": 10.0, "current_price": 10.0},
            PriceUpdateRequest("p2", 12.0, current_price=11.0),
            {"product_id": "p3", "new_price": 8.0},
        ])

        assert api.calls == ["p2", "p3"]
        assert result.skipped_count == 1
        assert [r.product_id for r in result.successes] == ["p2", "p3"]
        assert result.successes[0].old_price == 11.0

    @pytest.mark.asyncio
    async def test_validation_rejects_results(self):
        updater = BatchPriceUpdater(StubPriceSimulations(failing={"p1"}))

        result = await updater.apply_prices_with_validation(
            [
                {"product_id": "p1", "new_price": 10.0},
                {"product_id": "p2", "new_price": 50.0},
                {"product_id": "p3", "new_price": 5.0},
            ],
            validator=lambda update: update.simulation.income >= 5,
        )

        assert [r.product_id for r in result.successes] == ["p2"]
        assert result.failure_count == 2
        assert result.failures[1].error.code == G2AErrorCode.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_failure_indices_name_the_input_update(self):
        updater = BatchPriceUpdater(StubPriceSimulations(failing={"p1"}))
        updates = [
            {"product_id": "p1", "new_price": 10.0},
            {"product_id": "p2", "new_price": 50.0},
            {"product_id": "p3", "new_price": 5.0},
        ]

        result = await updater.apply_prices_with_validation(
            updates, validator=lambda update: update.simulation.income >= 5,
        )

        assert result.failed_indices == [0, 2]
        assert [updates[i]["product_id"] for i in result.failed_indices] == ["p1", "p3"]
        assert isinstance(result.failures[0].error, ValueError)
        assert result.failures[1].error.value == 5.0
        assert [(r.product_id, r.index) for r in result.successes] == [("p2", 1)]

    @pytest.mark.asyncio
    async def test_skipped_updates_keep_input_positions(self):
        updater = BatchPriceUpdater(StubPriceSimulations(failing={"p1"}))

        result = await updater.simulate_prices([
            {"product_id": "p0", "new_price": 10.0, "current_price": 10.0},
            {"product_id": "p1", "new_price": 12.0, "current_price": 11.0},
            {"product_id": "p2", "new_price": 9.0, "current_price": 10.0},
        ])

        assert result.skipped_count == 1
        assert result.failed_indices == [1]
        assert [r.index for r in result.successes] == [2]

    @pytest.mark.asyncio
    async def test_recommended_prices(self):
        updater = BatchPriceUpdater(StubPriceSimulations())

        result = await updater.get_recommended_prices(["p1", "p2"], {"p1": 10.0, "p2": 19.99}, markup=0.1)

        assert [r.recommended_price for r in result.successes] == [11.0, 21.99]
        assert result.successes[0].increase == pytest.approx(1.0)
