from .g2a_exceptions import (
    G2AErrorCode,
    G2AError,
    RETRYABLE_CODES,
    CircuitOpenError,
    BatchPartialFailureError,
    SyncConflictError,
    ValidationError,
    QuotaExceededError,
    WebhookValidationError,
    ConfigurationError,
)

__all__ = [
    'G2AErrorCode',
    'G2AError',
    'RETRYABLE_CODES',
    'CircuitOpenError',
    'BatchPartialFailureError',
    'SyncConflictError',
    'ValidationError',
    'QuotaExceededError',
    'WebhookValidationError',
    'ConfigurationError',
]
