# g2a_integration/exceptions/g2a_exceptions.py
from typing import Dict, Any, Optional, List
from datetime import datetime, timezone
from enum import Enum

from g2a_integration.utils.enhanced_logging import mask_sensitive_data


class G2AErrorCode(Enum):
    """Closed taxonomy of errors raised across the client"""
    AUTH_FAILED = "G2A_AUTH_FAILED"
    TOKEN_EXPIRED = "G2A_TOKEN_EXPIRED"
    INVALID_CREDENTIALS = "G2A_INVALID_CREDENTIALS"
    PRODUCT_NOT_FOUND = "G2A_PRODUCT_NOT_FOUND"
    ORDER_NOT_FOUND = "G2A_ORDER_NOT_FOUND"
    OUT_OF_STOCK = "G2A_OUT_OF_STOCK"
    API_ERROR = "G2A_API_ERROR"
    RATE_LIMIT = "G2A_RATE_LIMIT"
    TIMEOUT = "G2A_TIMEOUT"
    INVALID_REQUEST = "G2A_INVALID_REQUEST"
    NETWORK_ERROR = "G2A_NETWORK_ERROR"
    CIRCUIT_OPEN = "G2A_CIRCUIT_OPEN"
    BATCH_PARTIAL_FAILURE = "G2A_BATCH_PARTIAL_FAILURE"
    SYNC_CONFLICT = "G2A_SYNC_CONFLICT"
    VALIDATION_ERROR = "G2A_VALIDATION_ERROR"
    QUOTA_EXCEEDED = "G2A_QUOTA_EXCEEDED"


RETRYABLE_CODES = frozenset({
    G2AErrorCode.TIMEOUT,
    G2AErrorCode.NETWORK_ERROR,
    G2AErrorCode.RATE_LIMIT,
    G2AErrorCode.API_ERROR,
    G2AErrorCode.QUOTA_EXCEEDED,
})


class G2AError(Exception):
    """Base exception for every error raised by the integration client"""

    def __init__(
        self,
        code: G2AErrorCode,
        message: str,
        retryable: Optional[bool] = None,
        retry_after: Optional[int] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        http_status: Optional[int] = None,
        endpoint: Optional[str] = None,
        original_exception: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.retryable = code in RETRYABLE_CODES if retryable is None else retryable
        self.retry_after = retry_after
        self.error_code = error_code
        self.context = context or {}
        self.http_status = http_status
        self.endpoint = endpoint
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/API responses"""
        return {
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "retry_after": self.retry_after,
            "error_code": self.error_code,
            "http_status": self.http_status,
            "endpoint": self.endpoint,
            "timestamp": self.timestamp.isoformat(),
            "context": mask_sensitive_data(self.context),
            "original_error": str(self.original_exception) if self.original_exception else None,
        }


class CircuitOpenError(G2AError):
    """Raised when the circuit breaker for an endpoint is open"""

    def __init__(self, endpoint: str, retry_after: Optional[int] = None, **kwargs):
        wait_seconds = max(0, round((retry_after or 0) / 1000))
        super().__init__(
            G2AErrorCode.CIRCUIT_OPEN,
            f"Circuit breaker is open for {endpoint}. Will retry in {wait_seconds}s",
            retryable=False,
            retry_after=retry_after,
            endpoint=endpoint,
            **kwargs
        )


class BatchPartialFailureError(G2AError):
    """Raised by strict batch execution when any item failed"""

    def __init__(self, success_count: int, failure_count: int, failures: List[Any], **kwargs):
        super().__init__(
            G2AErrorCode.BATCH_PARTIAL_FAILURE,
            f"Batch operation partially failed: {success_count} succeeded, {failure_count} failed",
            retryable=False,
            context={
                "success_count": success_count,
                "failure_count": failure_count,
                "failures": [
                    {"index": failure.index, "error": str(failure.error)} for failure in failures
                ],
            },
            **kwargs
        )
        self.success_count = success_count
        self.failure_count = failure_count
        self.failures = failures


class SyncConflictError(G2AError):
    """Raised when a sync conflict needs out-of-band resolution"""

    def __init__(self, resource_id: str, message: str, conflict_data: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(
            G2AErrorCode.SYNC_CONFLICT,
            message,
            retryable=False,
            context={"resource_id": resource_id, "conflict_data": conflict_data or {}},
            **kwargs
        )
        self.resource_id = resource_id
        self.conflict_data = conflict_data or {}


class ValidationError(G2AError):
    """Raised when input validation fails"""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None, **kwargs):
        super().__init__(
            G2AErrorCode.VALIDATION_ERROR,
            message,
            retryable=False,
            context={"field": field, "value": value},
            **kwargs
        )
        self.field = field
        self.value = value


class QuotaExceededError(G2AError):
    """Raised when the local rate limiter cannot admit a request"""

    def __init__(self, endpoint: str, retry_after: Optional[int] = None, **kwargs):
        super().__init__(
            G2AErrorCode.QUOTA_EXCEEDED,
            f"Rate limit exceeded for {endpoint}",
            retryable=True,
            retry_after=retry_after,
            endpoint=endpoint,
            **kwargs
        )


class WebhookValidationError(G2AError):
    """Raised when an inbound webhook cannot be trusted"""

    def __init__(self, message: str, http_status: int = 400, **kwargs):
        code = G2AErrorCode.AUTH_FAILED if http_status == 401 else G2AErrorCode.VALIDATION_ERROR
        super().__init__(code, message, retryable=False, http_status=http_status, **kwargs)


class ConfigurationError(G2AError):
    """Raised when client configuration is invalid"""

    def __init__(self, message: str, errors: Optional[List[str]] = None, **kwargs):
        super().__init__(
            G2AErrorCode.VALIDATION_ERROR,
            message,
            retryable=False,
            context={"validation_errors": errors or []},
            **kwargs
        )
        self.errors = errors or []
