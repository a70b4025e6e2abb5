from .g2a_config import (
    Environment,
    G2AConfig,
    RetrySettings,
    CircuitBreakerSettings,
    RateLimitSettings,
    EndpointRateLimit,
    BatchSettings,
    HttpPoolSettings,
    LoggingConfig,
    MetricsSettings,
    DEFAULT_BASE_URLS,
    build_config,
    load_config_from_env,
    normalize_base_url,
)

__all__ = [
    "Environment",
    "G2AConfig",
    "RetrySettings",
    "CircuitBreakerSettings",
    "RateLimitSettings",
    "EndpointRateLimit",
    "BatchSettings",
    "HttpPoolSettings",
    "LoggingConfig",
    "MetricsSettings",
    "DEFAULT_BASE_URLS",
    "build_config",
    "load_config_from_env",
    "normalize_base_url",
]
