"""
Tests for the request pipeline: error mapping, retries and breakers as seen
through an API module.
"""

import httpx
import pytest

from g2a_integration.api import ProductsAPI
from g2a_integration.exceptions import G2AError, G2AErrorCode
from g2a_integration.monitoring import G2AMetrics
from g2a_integration.utils.error_mapper import ErrorMapper

PRODUCT = {"id": "10000000788017", "name": "Cyberpunk 2077 GOG.COM Key GLOBAL", "qty": 5, "price": 19.99}


def make_response(status, body=None, headers=None):
    return httpx.Response(status, json=body, headers=headers,
                          request=httpx.Request("GET", "https://sandboxapi.g2a.com/v1/products"))


class TestErrorMapper:
    """HTTP statuses and partner codes onto the taxonomy."""

    @pytest.mark.parametrize("status, code, retryable", [
        (401, G2AErrorCode.AUTH_FAILED, False),
        (403, G2AErrorCode.AUTH_FAILED, False),
        (404, G2AErrorCode.PRODUCT_NOT_FOUND, False),
        (400, G2AErrorCode.INVALID_REQUEST, False),
        (422, G2AErrorCode.INVALID_REQUEST, False),
        (429, G2AErrorCode.RATE_LIMIT, True),
        (500, G2AErrorCode.API_ERROR, True),
        (503, G2AErrorCode.API_ERROR, True),
    ])
    def test_status_mapping(self, status, code, retryable):
        error = ErrorMapper.from_http_response(make_response(status, {}), "ProductsAPI.list", endpoint="/products")

        assert error.code == code
        assert error.retryable is retryable
        assert error.http_status == status
        assert error.endpoint == "/products"

    def test_retry_after_header(self):
        error = ErrorMapper.from_http_response(make_response(429, {}, {"Retry-After": "3"}), "op")
        assert error.retry_after == 3000

    def test_partner_code_wins_over_status(self):
        error = ErrorMapper.from_http_response(
            make_response(400, {"code": "BR03", "message": "Too many requests"}), "op"
        )

        assert error.code == G2AErrorCode.RATE_LIMIT
        assert error.error_code == "BR03"
        assert error.retryable
        assert error.message == "Too many requests"

    def test_unknown_partner_code(self):
        error = ErrorMapper.from_http_response(make_response(400, {"code": "XYZ99"}), "op")

        assert error.code == G2AErrorCode.API_ERROR
        assert not error.retryable

    def test_transport_errors(self):
        timeout = ErrorMapper.from_transport_error(httpx.ReadTimeout("slow"), "op")
        network = ErrorMapper.from_transport_error(httpx.ConnectError("refused"), "op")

        assert timeout.code == G2AErrorCode.TIMEOUT
        assert network.code == G2AErrorCode.NETWORK_ERROR
        assert timeout.retryable and network.retryable

    def test_g2a_errors_pass_through(self):
        error = G2AError(G2AErrorCode.SYNC_CONFLICT, "conflict")
        assert ErrorMapper.from_error(error, "op") is error

    def test_unexpected_errors(self):
        error = ErrorMapper.from_error(KeyError("docs"), "op")

        assert error.code == G2AErrorCode.API_ERROR
        assert not error.retryable

    def test_error_dict_masks_secrets(self):
        error = G2AError(G2AErrorCode.AUTH_FAILED, "denied", context={"api_hash": "abc", "page": 2})
        data = error.to_dict()

        assert data["code"] == "G2A_AUTH_FAILED"
        assert data["context"] == {"api_hash": "[REDACTED]", "page": 2}
        assert str(error) == "[G2A_AUTH_FAILED] denied"


class TestPipeline:
    """Retries, breakers and metrics around real requests."""

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, router, make_api, make_config, make_executor):
        config = make_config(rate_limiting={"enabled": False},
                             retry={"max_retries": 2, "initial_delay_ms": 0, "jitter": False})
        metrics = G2AMetrics()
        api = make_api(ProductsAPI, config=config, executor=make_executor(config, metrics))
        router.add("GET", "/products/10000000788017", (503, {"message": "Unavailable"}), (200, PRODUCT))

        product = await api.get("10000000788017")

        assert product["name"] == PRODUCT["name"]
        assert router.calls("GET", "/products/10000000788017") == 2
        assert metrics.requests_total.get_value() == 2
        assert metrics.requests_success.get_value() == 1
        assert metrics.requests_retry.get_value() == 1
        assert metrics.request_duration.get_statistics()["count"] == 1

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, router, make_api, make_config, make_executor):
        config = make_config(rate_limiting={"enabled": False},
                             retry={"max_retries": 3, "initial_delay_ms": 0, "jitter": False})
        metrics = G2AMetrics()
        api = make_api(ProductsAPI, config=config, executor=make_executor(config, metrics))
        router.add("GET", "/products/1", (404, {"message": "Not found"}))

        with pytest.raises(G2AError) as exc_info:
            await api.get("1")

        assert exc_info.value.code == G2AErrorCode.PRODUCT_NOT_FOUND
        assert router.calls("GET", "/products/1") == 1
        assert metrics.requests_error.get_value() == 1

    @pytest.mark.asyncio
    async def test_rate_limit_response_mapped(self, router, make_api):
        api = make_api(ProductsAPI)
        router.add("GET", "/products", lambda request: httpx.Response(429, headers={"Retry-After": "2"}))

        with pytest.raises(G2AError) as exc_info:
            await api.list()

        assert exc_info.value.code == G2AErrorCode.RATE_LIMIT
        assert exc_info.value.retry_after == 2000

    @pytest.mark.asyncio
    async def test_transport_timeout_mapped(self, router, make_api):
        api = make_api(ProductsAPI)

        def timeout(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        router.add("GET", "/products", timeout)

        with pytest.raises(G2AError) as exc_info:
            await api.list()

        assert exc_info.value.code == G2AErrorCode.TIMEOUT
        assert exc_info.value.endpoint == "/products"

    @pytest.mark.asyncio
    async def test_breaker_opens_per_scope(self, router, make_api, make_config, make_executor):
        config = make_config(rate_limiting={"enabled": False}, circuit_breaker={"failure_threshold": 2})
        executor = make_executor(config)
        api = make_api(ProductsAPI, config=config, executor=executor)
        router.add("GET", "/products", (500, {"message": "Internal error"}))

        for _ in range(2):
            with pytest.raises(G2AError):
                await api.list()

        with pytest.raises(G2AError) as exc_info:
            await api.list()

        assert exc_info.value.code == G2AErrorCode.CIRCUIT_OPEN
        assert router.calls("GET", "/products") == 2
        assert executor.breakers.get("/orders").allow_request()

    @pytest.mark.asyncio
    async def test_unexpected_body_shape(self, router, make_api):
        api = make_api(ProductsAPI)
        router.add("GET", "/products", (200, {"total": "many", "docs": "none"}))

        with pytest.raises(G2AError) as exc_info:
            await api.list()

        assert exc_info.value.code == G2AErrorCode.API_ERROR
        assert not exc_info.value.retryable
