# g2a_integration/clients/request_executor.py
"""
The single choke point every partner call goes through.

Per attempt: rate limiter -> circuit breaker gate -> HTTP call -> error
mapping. ``RetryStrategy`` wraps the attempts, so a retried call waits for a
token and consults the breaker again.
"""

import time
from typing import Any, Awaitable, Callable, TypeVar

import httpx

from g2a_integration.exceptions import G2AError, G2AErrorCode
from g2a_integration.resilience import CircuitBreakerRegistry, RateLimiter, RetryStrategy
from g2a_integration.utils.enhanced_logging import get_logger
from g2a_integration.utils.error_mapper import ErrorMapper

logger = get_logger(__name__)

T = TypeVar('T')

TRANSIENT_FAILURE_CODES = frozenset({
    G2AErrorCode.TIMEOUT,
    G2AErrorCode.NETWORK_ERROR,
    G2AErrorCode.API_ERROR,
    G2AErrorCode.RATE_LIMIT,
})


def is_transient_failure(error: BaseException) -> bool:
    """Only outages count against a breaker; rejections of a bad request do not."""
    if isinstance(error, G2AError):
        return error.retryable and error.code in TRANSIENT_FAILURE_CODES
    return True


class RequestExecutor:
    def __init__(self, rate_limiter: RateLimiter, breakers: CircuitBreakerRegistry,
                 retry_strategy: RetryStrategy, metrics):
        self.rate_limiter = rate_limiter
        self.breakers = breakers
        self.retry_strategy = retry_strategy
        self.metrics = metrics
        self.logger = get_logger("request_executor")

    async def execute(self, scope: str, operation: str, request_fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``request_fn`` under the resilience stack for ``scope``.

        ``request_fn`` may return an ``httpx.Response``; 5xx and 429 responses
        are turned into errors here. Everything else it returns is passed
        back untouched.

        Raises:
            G2AError: taxonomy-coded failure after retries are exhausted
        """
        breaker = self.breakers.get(scope)
        start_time = time.monotonic()
        self.logger.debug("Request started", endpoint=scope, operation=operation)

        async def attempt():
            await self.rate_limiter.wait_if_needed(scope)
            return await breaker.call(lambda: self._send(scope, operation, request_fn))

        try:
            result = await self.retry_strategy.execute(attempt, operation)
        except G2AError as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            self.metrics.requests_error.increment()
            self.metrics.request_duration.record(duration_ms)
            self.logger.error(
                "Request failed",
                endpoint=scope,
                operation=operation,
                error_code=e.code.value,
                partner_code=e.error_code,
                error=e.message,
                duration_ms=round(duration_ms, 2)
            )
            raise

        duration_ms = (time.monotonic() - start_time) * 1000
        self.metrics.requests_success.increment()
        self.metrics.request_duration.record(duration_ms)
        self.logger.debug(
            "Request succeeded",
            endpoint=scope,
            operation=operation,
            duration_ms=round(duration_ms, 2)
        )
        return result

    async def _send(self, scope: str, operation: str, request_fn: Callable[[], Awaitable[Any]]) -> Any:
        self.metrics.requests_total.increment()
        try:
            result = await request_fn()
        except G2AError:
            raise
        except httpx.TransportError as e:
            raise ErrorMapper.from_transport_error(e, operation, endpoint=scope) from e
        except Exception as e:
            raise ErrorMapper.from_error(e, operation, endpoint=scope) from e

        if isinstance(result, httpx.Response) and (result.status_code >= 500 or result.status_code == 429):
            raise ErrorMapper.from_http_response(result, operation, endpoint=scope)
        return result
