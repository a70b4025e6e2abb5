from typing import Any, Dict, Optional

from pydantic import Field

from g2a_integration.schemas.base import G2ABaseSchema


class WebhookEvent(G2ABaseSchema):
    """Inbound partner event after header/body field resolution."""
    event_id: str
    order_id: str
    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    signature: Optional[str] = None
    nonce: Optional[str] = None
    timestamp: Optional[int] = None

    @property
    def idempotency_key(self) -> str:
        return f"{self.event_id}:{self.order_id}:{self.type}"
