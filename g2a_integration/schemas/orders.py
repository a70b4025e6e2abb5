from typing import Optional

from pydantic import Field

from g2a_integration.schemas.base import G2ABaseSchema


class CreateOrderRequest(G2ABaseSchema):
    product_id: str = Field(..., min_length=1)
    currency: str = "EUR"
    max_price: Optional[float] = Field(None, gt=0)


class OrderResponse(G2ABaseSchema):
    order_id: str
    price: float
    currency: str


class OrderDetails(G2ABaseSchema):
    order_id: str
    status: str
    price: float
    currency: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class OrderKey(G2ABaseSchema):
    key: str
    is_file: bool = Field(False, alias="isFile")


class PayOrderResponse(G2ABaseSchema):
    status: bool
    transaction_id: Optional[str] = None
