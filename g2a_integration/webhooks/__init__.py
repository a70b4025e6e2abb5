from .signature import (
    WebhookSignatureVerifier,
    extract_webhook_event,
    build_webhook_event,
    compact_json,
    CLOCK_SKEW_TOLERANCE_MS,
)
from .idempotency import IdempotencyStore, IdempotencyRecord, ProcessingStatus, IDEMPOTENCY_TTL_SECONDS
from .processor import WebhookProcessor, WebhookResult, ORDER_STATUS_MAP

__all__ = [
    'WebhookSignatureVerifier',
    'extract_webhook_event',
    'build_webhook_event',
    'compact_json',
    'CLOCK_SKEW_TOLERANCE_MS',
    'IdempotencyStore',
    'IdempotencyRecord',
    'ProcessingStatus',
    'IDEMPOTENCY_TTL_SECONDS',
    'WebhookProcessor',
    'WebhookResult',
    'ORDER_STATUS_MAP',
]
