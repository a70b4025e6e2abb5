from .rate_limiter import RateLimiter, RateLimitResult, TokenBucket
from .circuit_breaker import CircuitBreaker, CircuitBreakerRegistry, CircuitBreakerStats, CircuitState
from .retry_policies import RetryStrategy, RetryPolicy, NON_RETRYABLE_CODES

__all__ = [
    "RateLimiter",
    "RateLimitResult",
    "TokenBucket",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitBreakerStats",
    "CircuitState",
    "RetryStrategy",
    "RetryPolicy",
    "NON_RETRYABLE_CODES",
]
