from typing import List, Optional

from pydantic import Field

from g2a_integration.schemas.base import G2ABaseSchema


class CreateReservationRequest(G2ABaseSchema):
    order_id: str = Field(..., alias="orderId")
    product_id: str = Field(..., alias="productId")
    quantity: int = Field(1, ge=1)


class Reservation(G2ABaseSchema):
    reservation_id: str = Field(..., alias="reservationId")
    order_id: Optional[str] = Field(None, alias="orderId")
    product_id: Optional[str] = Field(None, alias="productId")
    quantity: Optional[int] = None
    status: Optional[str] = None
    expires_at: Optional[str] = Field(None, alias="expiresAt")
    created_at: Optional[str] = Field(None, alias="createdAt")


class ConfirmReservationResponse(G2ABaseSchema):
    reservation_id: str = Field(..., alias="reservationId")
    status: str = "confirmed"
    stock_ready: bool = Field(False, alias="stockReady")


class InventoryCheck(G2ABaseSchema):
    order_id: str = Field(..., alias="orderId")
    stock_ready: bool = Field(False, alias="stockReady")
    keys: Optional[List[str]] = None
