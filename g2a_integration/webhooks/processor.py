# g2a_integration/webhooks/processor.py
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from g2a_integration.exceptions import WebhookValidationError
from g2a_integration.monitoring import G2AMetrics
from g2a_integration.persistence import ResourceStore
from g2a_integration.schemas import WebhookEvent
from g2a_integration.utils.enhanced_logging import get_logger
from g2a_integration.webhooks.idempotency import IdempotencyStore, ProcessingStatus
from g2a_integration.webhooks.signature import WebhookSignatureVerifier, build_webhook_event, extract_webhook_event

ORDER_RESOURCE = "order"

REQUIRED_FIELDS = ("event_id", "order_id", "type", "signature", "nonce", "timestamp")

ORDER_STATUS_EVENTS = ("order.status_changed", "order.completed", "order.failed")

ORDER_STATUS_MAP = {
    "pending": "PENDING",
    "processing": "PROCESSING",
    "completed": "COMPLETED",
    "failed": "FAILED",
    "cancelled": "CANCELLED",
}

EventHandler = Callable[[WebhookEvent], Awaitable[None]]


@dataclass
class WebhookResult:
    success: bool
    message: str
    duplicate: bool = False


class WebhookProcessor:
    """
    Validates and applies inbound partner events exactly once.

    Order status events update the order record in the ``ResourceStore``;
    other event types can be handled by registering a handler.
    """

    def __init__(self, verifier: WebhookSignatureVerifier, idempotency: IdempotencyStore,
                 store: ResourceStore, metrics: Optional[G2AMetrics] = None):
        self.verifier = verifier
        self.idempotency = idempotency
        self.store = store
        self.metrics = metrics or G2AMetrics(enabled=False)
        self.handlers: Dict[str, EventHandler] = {name: self.handle_order_status for name in ORDER_STATUS_EVENTS}
        self.logger = get_logger("webhooks.processor")

    def register_handler(self, event_type: str, handler: EventHandler):
        self.handlers[event_type] = handler

    async def process(self, body: Dict[str, Any], headers: Optional[Mapping[str, str]] = None) -> WebhookResult:
        """
        Raises:
            WebhookValidationError: 400 for missing fields or a stale timestamp,
                401 for a bad signature
        """
        self.metrics.webhook_total.increment()
        fields = extract_webhook_event(body, headers)

        missing = [name for name in REQUIRED_FIELDS if not fields.get(name)]
        if missing:
            raise WebhookValidationError(
                "Missing required webhook fields",
                http_status=400,
                context={"missing": missing},
            )
        if not self.verifier.validate_timestamp(fields["timestamp"]):
            raise WebhookValidationError("Webhook timestamp is too old or too far in future", http_status=400)

        event = build_webhook_event(fields)
        key = event.idempotency_key
        existing = await self.idempotency.get(key)
        if existing is not None and existing.status == ProcessingStatus.DONE:
            self.logger.info("Duplicate webhook ignored", event_id=event.event_id, type=event.type)
            return WebhookResult(True, "Event already processed", duplicate=True)
        if existing is not None and self.idempotency.in_flight(existing):
            self.logger.info("Webhook already in flight", event_id=event.event_id, type=event.type)
            return WebhookResult(True, "Event is already being processed", duplicate=True)

        await self.idempotency.mark(key, ProcessingStatus.PROCESSING)

        if not self.verifier.verify(event.payload, event.signature, event.timestamp, event.nonce):
            self.metrics.webhook_invalid.increment()
            await self.idempotency.mark(key, ProcessingStatus.FAILED, "Invalid signature")
            self.logger.warning("Invalid webhook signature", event_id=event.event_id, order_id=event.order_id)
            raise WebhookValidationError("Invalid webhook signature", http_status=401)
        self.metrics.webhook_valid.increment()

        try:
            handler = self.handlers.get(event.type)
            if handler is None:
                self.logger.info("Unhandled webhook type", type=event.type, event_id=event.event_id)
            else:
                await handler(event)
        except Exception as e:
            await self.idempotency.mark(key, ProcessingStatus.FAILED, str(e))
            self.logger.error("Webhook processing failed", event_id=event.event_id, error=str(e), exc_info=True)
            raise

        await self.idempotency.mark(key, ProcessingStatus.DONE)
        self.logger.info("Webhook processed", event_id=event.event_id, type=event.type, order_id=event.order_id)
        return WebhookResult(True, "Webhook processed successfully")

    async def handle_order_status(self, event: WebhookEvent):
        order = await self.store.get(ORDER_RESOURCE, event.order_id)
        if order is None:
            self.logger.warning("Order not found for webhook", order_id=event.order_id)
            return

        status = str(event.payload.get("status") or "").lower()
        mapped = ORDER_STATUS_MAP.get(status)
        if mapped is None:
            self.logger.warning("Unknown order status in webhook", order_id=event.order_id, status=status)
            return

        order["status"] = mapped
        await self.store.upsert(ORDER_RESOURCE, event.order_id, order)
        self.logger.info("Order status updated via webhook", order_id=event.order_id, status=mapped)
