from .http_transport import create_http_client, build_limits
from .request_executor import RequestExecutor, is_transient_failure, TRANSIENT_FAILURE_CODES

__all__ = [
    'create_http_client',
    'build_limits',
    'RequestExecutor',
    'is_transient_failure',
    'TRANSIENT_FAILURE_CODES',
]
