# g2a_integration/clients/g2a_client.py
"""
Integration client facade.

Composes configuration, the resilience stack, authentication and the API
modules into one caller-owned object. Nothing here is process-global: two
clients never share buckets, breakers, metrics or tokens.

Example:
    async with G2AIntegrationClient(build_config({"api_key": ..., "api_hash": ...})) as client:
        products = await client.products.get_all()
"""

import itertools
from typing import Any, Dict, Optional

import httpx

from g2a_integration.api import (
    BestsellersAPI,
    JobsAPI,
    OffersAPI,
    OrdersAPI,
    PriceSimulationsAPI,
    ProductsAPI,
    ReservationsAPI,
)
from g2a_integration.auth import AuthManager, ExportHashAuth, ImportBearerAuth, TokenManager
from g2a_integration.batch import BatchOperations, BatchProductFetcher
from g2a_integration.clients.http_transport import create_http_client
from g2a_integration.clients.request_executor import RequestExecutor, is_transient_failure
from g2a_integration.config import G2AConfig, build_config
from g2a_integration.monitoring import G2AMetrics
from g2a_integration.resilience import CircuitBreakerRegistry, RateLimiter, RetryStrategy
from g2a_integration.utils.enhanced_logging import G2ALogger


_client_ids = itertools.count(1)


class G2AIntegrationClient:
    """
    Entry point to the partner API.

    Products and Orders talk to the Export API with hash credentials; the
    remaining modules talk to the Import API with an OAuth2 bearer token.
    """

    def __init__(self, config: G2AConfig, *,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 token_cache: Optional[TokenManager] = None,
                 metrics: Optional[G2AMetrics] = None):
        self.config = config
        self.logger = G2ALogger(
            f"g2a_integration.client.{next(_client_ids)}",
            level=config.logging.level,
            mask_secrets=config.logging.mask_secrets,
            enabled=config.logging.enabled,
        )

        self.metrics = metrics or G2AMetrics(enabled=config.metrics.enabled)
        self.rate_limiter = RateLimiter(config.rate_limiting, metrics=self.metrics)
        self.circuit_breakers = CircuitBreakerRegistry(
            config.circuit_breaker, is_failure=is_transient_failure, metrics=self.metrics
        )
        self.retry_strategy = RetryStrategy(config.retry, metrics=self.metrics)
        self.executor = RequestExecutor(self.rate_limiter, self.circuit_breakers, self.retry_strategy, self.metrics)

        self.auth_manager = AuthManager(config, token_manager=token_cache, transport=transport)
        self.export_http = create_http_client(config, auth=ExportHashAuth(self.auth_manager), transport=transport)
        self.import_http = create_http_client(config, auth=ImportBearerAuth(self.auth_manager), transport=transport)

        batch = config.batch
        self.products = ProductsAPI(self.export_http, self.executor)
        self.orders = OrdersAPI(self.export_http, self.executor)
        self.offers = OffersAPI(self.import_http, self.executor)
        self.reservations = ReservationsAPI(self.import_http, self.executor)
        self.jobs = JobsAPI(self.import_http, self.executor)
        self.bestsellers = BestsellersAPI(self.import_http, self.executor)
        self.price_simulations = PriceSimulationsAPI(
            self.import_http, self.executor,
            batch_operations=BatchOperations(batch.product_fetch_chunk_size, batch.max_concurrent_requests),
        )

        self._initialized = False
        self._closed = False

    @classmethod
    async def create(cls, overrides: Optional[Dict[str, Any]] = None, **kwargs) -> "G2AIntegrationClient":
        """Build a config from partial settings and return an initialized client."""
        client = cls(build_config(overrides), **kwargs)
        await client.initialize()
        return client

    async def initialize(self):
        """
        Validate credentials and connect the token cache. Idempotent.

        Raises:
            G2AError: INVALID_CREDENTIALS for unusable credentials
        """
        if self._initialized:
            return
        await self.auth_manager.initialize()
        self._initialized = True
        self.logger.info(
            "G2A integration client initialized",
            env=self.config.env.value,
            base_url=self.config.base_url,
            timeout_ms=self.config.timeout_ms
        )

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def __aenter__(self) -> "G2AIntegrationClient":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    def get_config(self) -> G2AConfig:
        return self.config

    def get_logger(self) -> G2ALogger:
        return self.logger

    def get_metrics(self) -> G2AMetrics:
        return self.metrics

    def get_batch_product_fetcher(self) -> BatchProductFetcher:
        return BatchProductFetcher(
            self.products,
            chunk_size=self.config.batch.product_fetch_chunk_size,
            max_concurrency=self.config.batch.max_concurrent_requests,
        )

    def get_rate_limiter_stats(self, endpoint: Optional[str] = None) -> Dict[str, Any]:
        stats = self.rate_limiter.get_stats()
        if endpoint is not None:
            stats["endpoint"] = endpoint
            stats["remaining"] = self.rate_limiter.get_remaining_tokens(endpoint)
            stats["wait_time_ms"] = self.rate_limiter.get_wait_time_ms(endpoint)
        return stats

    def get_circuit_breaker_stats(self, endpoint: Optional[str] = None) -> Dict[str, Any]:
        if endpoint is None:
            return self.circuit_breakers.get_all_stats()
        return self.circuit_breakers.get(endpoint).get_stats().to_dict()

    def reset(self):
        """Refill rate buckets and close every breaker. Metrics are kept."""
        self.rate_limiter.reset()
        self.circuit_breakers.reset_all()
        self.logger.info("Client resilience state reset")

    async def aclose(self):
        if self._closed:
            return
        self._closed = True
        await self.export_http.aclose()
        await self.import_http.aclose()
        await self.auth_manager.close()
        self._initialized = False
        self.logger.info("G2A integration client closed")
