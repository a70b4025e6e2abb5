"""
Shared fixtures: configuration, a controllable clock, a routed
``httpx.MockTransport`` and in-memory Redis doubles.
"""

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from g2a_integration.clients import RequestExecutor, create_http_client, is_transient_failure
from g2a_integration.config import build_config
from g2a_integration.monitoring import G2AMetrics
from g2a_integration.resilience import CircuitBreakerRegistry, RateLimiter, RetryStrategy

API_KEY = "qdaiciDiyMaTjxMt"
API_HASH = "74026b3dc2c6db6a30a73e71cdb138b1e1b5eb7a97ced46689e2d28db1050875"
BASE_PATH = "/v1"

FAST_RETRY = {"max_retries": 0, "initial_delay_ms": 0, "jitter": False}


async def no_sleep(seconds):
    return None


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class Router:
    """
    Handler for ``httpx.MockTransport``.

    Each route holds a queue of responses; the last one repeats. A response
    is either ``(status, json_body)`` or a callable taking the request.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method: str, path: str, *responses):
        self.routes.setdefault((method.upper(), path), []).extend(responses)
        return self

    def calls(self, method: str, path: str) -> int:
        return sum(1 for request in self.requests if (request.method, self.path_of(request)) == (method, path))

    @staticmethod
    def path_of(request: httpx.Request) -> str:
        path = request.url.path
        if path.startswith(BASE_PATH):
            path = path[len(BASE_PATH):]
        return path

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, self.path_of(request)))
        if not queue:
            return httpx.Response(404, json={"message": "No route"})
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(response):
            return response(request)
        status, body = response
        return httpx.Response(status, json=body)


class MockRedisClient:
    """Async stand-in for the handful of Redis commands the client uses."""

    def __init__(self):
        self._store = {}
        self.ttls = {}

    async def ping(self):
        return True

    async def get(self, key):
        return self._store.get(key)

    async def setex(self, key, ttl, value):
        self._store[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, key):
        return 1 if self._store.pop(key, None) is not None else 0

    async def aclose(self):
        self._store.clear()


class BrokenRedisClient(MockRedisClient):
    async def get(self, key):
        raise RedisConnectionError("Connection refused")

    async def setex(self, key, ttl, value):
        raise RedisConnectionError("Connection refused")


def _make_config(**overrides):
    data = {
        "api_key": API_KEY,
        "api_hash": API_HASH,
        "retry": dict(FAST_RETRY),
        "logging": {"level": "error"},
    }
    data.update(overrides)
    return build_config(data)


def _make_executor(config, metrics=None, clock=None):
    metrics = metrics or G2AMetrics()
    breaker_kwargs = {"clock": clock} if clock is not None else {}
    return RequestExecutor(
        RateLimiter(config.rate_limiting, metrics=metrics),
        CircuitBreakerRegistry(config.circuit_breaker, is_failure=is_transient_failure,
                               metrics=metrics, **breaker_kwargs),
        RetryStrategy(config.retry, metrics=metrics, sleep=no_sleep),
        metrics,
    )


@pytest.fixture
def make_config():
    return _make_config


@pytest.fixture
def make_executor():
    return _make_executor


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def router():
    return Router().add("GET", "/token", (200, {"access_token": "token-1", "expires_in": 3600}))


@pytest.fixture
def make_api(router):
    """Build an API module over the mock transport with rate limiting off."""

    def factory(api_cls, config=None, executor=None, **kwargs):
        config = config or _make_config(rate_limiting={"enabled": False})
        http = create_http_client(config, transport=httpx.MockTransport(router))
        return api_cls(http, executor or _make_executor(config), **kwargs)

    return factory


@pytest.fixture
def redis_client():
    return MockRedisClient()


@pytest.fixture
def broken_redis_client():
    return BrokenRedisClient()
