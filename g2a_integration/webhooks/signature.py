# g2a_integration/webhooks/signature.py
"""
Webhook authenticity checks.

The partner signs ``compact_json(payload) + timestamp_ms + nonce + secret``
with HMAC-SHA256 keyed by the same secret (the account's API hash).
"""

import hashlib
import hmac
import json
from typing import Any, Dict, Mapping, Optional

from g2a_integration.schemas import WebhookEvent
from g2a_integration.utils.time_utils import epoch_millis

CLOCK_SKEW_TOLERANCE_MS = 5 * 60 * 1000

SIGNATURE_HEADERS = ("x-g2a-signature", "signature")
NONCE_HEADERS = ("x-g2a-nonce", "nonce")
TIMESTAMP_HEADERS = ("x-g2a-timestamp", "timestamp")


def compact_json(payload: Any) -> str:
    """Serialize without whitespace, keeping key order, as the partner does."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


class WebhookSignatureVerifier:
    def __init__(self, secret: str, skew_tolerance_ms: int = CLOCK_SKEW_TOLERANCE_MS):
        self.secret = secret
        self.skew_tolerance_ms = skew_tolerance_ms

    def sign(self, payload: Any, timestamp: int, nonce: str) -> str:
        string_to_sign = f"{compact_json(payload)}{timestamp}{nonce}{self.secret}"
        return hmac.new(self.secret.encode("utf-8"), string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    def verify(self, payload: Any, signature: str, timestamp: int, nonce: str) -> bool:
        if not signature:
            return False
        expected = self.sign(payload, timestamp, nonce)
        return hmac.compare_digest(signature.lower().encode("utf-8"), expected.encode("utf-8"))

    def validate_timestamp(self, timestamp_ms: int, now_ms: Optional[int] = None) -> bool:
        now_ms = epoch_millis() if now_ms is None else now_ms
        return abs(now_ms - int(timestamp_ms)) <= self.skew_tolerance_ms


def _first(headers: Mapping[str, str], names) -> Optional[str]:
    for name in names:
        value = headers.get(name)
        if value:
            return value
    return None


def extract_webhook_event(body: Dict[str, Any], headers: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Merge the signing triple into the event fields, headers first.

    Header names are matched case-insensitively. The result is a plain dict
    so missing fields can be reported before building a ``WebhookEvent``.
    """
    lowered = {str(key).lower(): value for key, value in (headers or {}).items()}

    timestamp = _first(lowered, TIMESTAMP_HEADERS) or body.get("timestamp")
    if timestamp not in (None, ""):
        try:
            timestamp = int(timestamp)
        except (TypeError, ValueError):
            timestamp = None

    return {
        "event_id": body.get("event_id"),
        "order_id": body.get("order_id"),
        "type": body.get("type"),
        "payload": body.get("payload") or {},
        "signature": _first(lowered, SIGNATURE_HEADERS) or body.get("signature"),
        "nonce": _first(lowered, NONCE_HEADERS) or body.get("nonce"),
        "timestamp": timestamp or None,
    }


def build_webhook_event(fields: Dict[str, Any]) -> WebhookEvent:
    return WebhookEvent.model_validate(fields)
