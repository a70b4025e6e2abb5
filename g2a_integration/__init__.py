from .config import G2AConfig, Environment, build_config, load_config_from_env
from .exceptions import G2AError, G2AErrorCode
from .utils import get_logger, LoggingContext
from .monitoring import G2AMetrics
from .resilience import RateLimiter, CircuitBreaker, RetryStrategy
from .clients import RequestExecutor
from .api import ProductsAPI, OrdersAPI, OffersAPI, ReservationsAPI, JobsAPI, BestsellersAPI, PriceSimulationsAPI
from .batch import BatchOperations, BatchResult
from .persistence import ResourceStore, InMemoryResourceStore
from .sync import ConflictResolver, ConflictStrategy, DeltaSync, SyncReconciliation, SyncOrchestrator
from .webhooks import WebhookProcessor, WebhookSignatureVerifier, IdempotencyStore
from .clients.g2a_client import G2AIntegrationClient

__version__ = "1.0.0"

__all__ = [
    'G2AIntegrationClient',
    'G2AConfig',
    'Environment',
    'build_config',
    'load_config_from_env',
    'G2AError',
    'G2AErrorCode',
    'get_logger',
    'LoggingContext',
    'G2AMetrics',
    'RateLimiter',
    'CircuitBreaker',
    'RetryStrategy',
    'RequestExecutor',
    'ProductsAPI',
    'OrdersAPI',
    'OffersAPI',
    'ReservationsAPI',
    'JobsAPI',
    'BestsellersAPI',
    'PriceSimulationsAPI',
    'BatchOperations',
    'BatchResult',
    'ResourceStore',
    'InMemoryResourceStore',
    'ConflictResolver',
    'ConflictStrategy',
    'DeltaSync',
    'SyncReconciliation',
    'SyncOrchestrator',
    'WebhookProcessor',
    'WebhookSignatureVerifier',
    'IdempotencyStore',
]
