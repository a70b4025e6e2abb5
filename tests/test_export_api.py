"""
Tests for the Export API modules: products and orders.
"""

import json

import httpx
import pytest

from g2a_integration.api import OrdersAPI, ProductsAPI
from g2a_integration.exceptions import G2AError, G2AErrorCode, ValidationError


def product(index):
    return {"id": f"p{index}", "name": f"Game {index} Steam Key GLOBAL", "qty": 3, "price": 10.0 + index}


def paged_catalog(total, page_size):
    """Route handler serving ``total`` products ``page_size`` at a time."""
    def handler(request):
        page = int(request.url.params.get("page", 1))
        start = (page - 1) * page_size
        docs = [product(i) for i in range(start, min(start + page_size, total))]
        return httpx.Response(200, json={"total": total, "page": page, "docs": docs})
    return handler


@pytest.fixture
def products_api(make_api):
    api = make_api(ProductsAPI)
    api.page_delay = 0
    return api


@pytest.fixture
def orders_api(make_api):
    api = make_api(OrdersAPI)
    api.payment_retry_delay = 0
    return api


class TestProductsAPI:
    """Catalog listing, lookup and pagination."""

    @pytest.mark.asyncio
    async def test_list_sends_partner_params(self, router, products_api):
        router.add("GET", "/products", (200, {"total": 1, "page": 1, "docs": [product(1)]}))

        result = await products_api.list({"min_qty": 1, "includeOutOfStock": False, "page": 1})

        params = router.requests[-1].url.params
        assert params["minQty"] == "1"
        assert params["includeOutOfStock"] == "false"
        assert params["page"] == "1"
        assert result.total == 1
        assert result.docs[0]["id"] == "p1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("filters", [
        {"page": 0},
        {"minPriceFrom": 10, "minPriceTo": 5},
        {"updatedAtFrom": "yesterday"},
        {"updatedAtFrom": "2024-02-01 00:00:00", "updatedAtTo": "2024-01-01 00:00:00"},
        {"sort": "price"},
    ])
    async def test_invalid_filters_rejected_before_request(self, router, products_api, filters):
        with pytest.raises(ValidationError):
            await products_api.list(filters)

        assert router.calls("GET", "/products") == 0

    @pytest.mark.asyncio
    async def test_get_unknown_product(self, router, products_api):
        router.add("GET", "/products/missing", (404, {"message": "Not found"}))

        with pytest.raises(G2AError) as exc_info:
            await products_api.get("missing")

        assert exc_info.value.code == G2AErrorCode.PRODUCT_NOT_FOUND
        assert exc_info.value.context["product_id"] == "missing"

    @pytest.mark.asyncio
    async def test_get_all_pages_until_total(self, router, products_api):
        router.add("GET", "/products", paged_catalog(total=25, page_size=10))
        progress = []

        products = await products_api.get_all(on_progress=lambda *args: progress.append(args))

        assert len(products) == 25
        assert len({p["id"] for p in products}) == 25
        assert router.calls("GET", "/products") == 3
        assert progress == [(1, 25, 10), (2, 25, 20), (3, 25, 25)]

    @pytest.mark.asyncio
    async def test_get_all_stops_on_empty_page(self, router, products_api):
        router.add(
            "GET", "/products",
            (200, {"total": 50, "page": 1, "docs": [product(1)]}),
            (200, {"total": 50, "page": 2, "docs": []}),
        )

        products = await products_api.get_all()

        assert [p["id"] for p in products] == ["p1"]

    @pytest.mark.asyncio
    async def test_search_filters_by_name(self, router, products_api):
        docs = [{"id": "1", "name": "The Witcher 3"}, {"id": "2", "name": "Cyberpunk 2077"}]
        router.add("GET", "/products", (200, {"total": 2, "page": 1, "docs": docs}))

        result = await products_api.search("witcher")

        assert result.total == 1
        assert result.docs[0]["id"] == "1"

    @pytest.mark.asyncio
    async def test_batch_get_skips_failures(self, router, products_api):
        router.add("GET", "/products/p1", (200, product(1)))
        router.add("GET", "/products/p2", (404, {}))
        router.add("GET", "/products/p3", (200, product(3)))

        products = await products_api.batch_get(["p1", "p2", "p3"])

        assert [p["id"] for p in products] == ["p1", "p3"]


class TestOrdersAPI:
    """Order placement, payment sub-codes and key download."""

    @pytest.mark.asyncio
    async def test_create(self, router, orders_api):
        router.add("POST", "/order", (200, {"order_id": "ord-1", "price": 9.99, "currency": "EUR"}))

        order = await orders_api.create("10000000788017", max_price=10.5)

        assert order.order_id == "ord-1"
        assert json.loads(router.requests[-1].content) == {
            "product_id": "10000000788017",
            "currency": "EUR",
            "max_price": 10.5,
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("product_id, max_price", [("", None), ("p1", 0), ("p1", -5)])
    async def test_create_validates_input(self, router, orders_api, product_id, max_price):
        with pytest.raises(ValidationError):
            await orders_api.create(product_id, max_price=max_price)

        assert router.calls("POST", "/order") == 0

    @pytest.mark.asyncio
    async def test_get_details(self, router, orders_api):
        router.add("GET", "/order/details/ord-1", (200, {
            "order_id": "ord-1", "status": "complete", "price": 9.99, "currency": "EUR",
        }))

        details = await orders_api.get("ord-1")

        assert details.status == "complete"

    @pytest.mark.asyncio
    async def test_get_unknown_order(self, router, orders_api):
        router.add("GET", "/order/details/nope", (404, {}))

        with pytest.raises(G2AError) as exc_info:
            await orders_api.get("nope")

        assert exc_info.value.code == G2AErrorCode.ORDER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_pay_retries_once_when_not_ready(self, router, orders_api):
        router.add(
            "PUT", "/order/pay/ord-1",
            (403, {"code": "ORD03", "message": "Payment is not ready"}),
            (200, {"status": True, "transaction_id": "tx-1"}),
        )

        result = await orders_api.pay("ord-1")

        assert result.status is True
        assert result.transaction_id == "tx-1"
        assert router.calls("PUT", "/order/pay/ord-1") == 2

    @pytest.mark.asyncio
    async def test_pay_gives_up_after_second_not_ready(self, router, orders_api):
        router.add("PUT", "/order/pay/ord-1", (403, {"code": "ORD03"}))

        with pytest.raises(G2AError) as exc_info:
            await orders_api.pay("ord-1")

        assert exc_info.value.error_code == "ORD03"
        assert router.calls("PUT", "/order/pay/ord-1") == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("partner_code, message", [
        ("ORD112", "Not enough funds to pay for order"),
        ("ORD114", "Payment is too late. Try with another order"),
    ])
    async def test_pay_fails_fast(self, router, orders_api, partner_code, message):
        router.add("PUT", "/order/pay/ord-1", (403, {"code": partner_code}))

        with pytest.raises(G2AError) as exc_info:
            await orders_api.pay("ord-1")

        assert exc_info.value.code == G2AErrorCode.INVALID_REQUEST
        assert exc_info.value.error_code == partner_code
        assert exc_info.value.message == message
        assert router.calls("PUT", "/order/pay/ord-1") == 1

    @pytest.mark.asyncio
    async def test_pay_in_progress(self, router, orders_api):
        router.add("PUT", "/order/pay/ord-1", (402, {}))

        with pytest.raises(G2AError) as exc_info:
            await orders_api.pay("ord-1")

        assert exc_info.value.error_code == "ORD05"
        assert exc_info.value.http_status == 402

    @pytest.mark.asyncio
    async def test_get_key(self, router, orders_api):
        router.add("GET", "/order/key/ord-1", (200, {"key": "ABCDE-FGHIJ-KLMNO", "isFile": False}))

        key = await orders_api.get_key("ord-1")

        assert key.key == "ABCDE-FGHIJ-KLMNO"
        assert key.is_file is False

    @pytest.mark.asyncio
    async def test_key_downloaded_twice(self, router, orders_api):
        router.add("GET", "/order/key/ord-1", (400, {"code": "ORD004", "message": "Already downloaded"}))

        with pytest.raises(G2AError) as exc_info:
            await orders_api.get_key("ord-1")

        assert exc_info.value.code == G2AErrorCode.INVALID_REQUEST
        assert exc_info.value.error_code == "ORD004"

    @pytest.mark.asyncio
    async def test_batch_create_skips_failures(self, router, orders_api):
        def create(request):
            body = json.loads(request.content)
            if body["product_id"] == "bad":
                return httpx.Response(400, json={"message": "Unknown product"})
            return httpx.Response(200, json={"order_id": f"ord-{body['product_id']}", "price": 1.0, "currency": "EUR"})

        router.add("POST", "/order", create)

        orders = await orders_api.batch_create([
            {"product_id": "p1"},
            {"product_id": "bad"},
            {"product_id": ""},
            {"product_id": "p2"},
        ])

        assert [order.order_id for order in orders] == ["ord-p1", "ord-p2"]
