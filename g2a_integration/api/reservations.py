# g2a_integration/api/reservations.py
"""
Dropshipping reservations on the Import API.

The partner holds a reservation only briefly, so every call here uses a
fixed 9 second timeout regardless of the client-wide setting.
"""

import asyncio
import time
from typing import Any, Dict, Union

from g2a_integration.api.base import BaseAPI
from g2a_integration.exceptions import G2AError, G2AErrorCode
from g2a_integration.schemas import (
    ConfirmReservationResponse,
    CreateReservationRequest,
    InventoryCheck,
    Reservation,
)

RESERVATION_TIMEOUT_SECONDS = 9.0


class ReservationsAPI(BaseAPI):
    scope = "/reservations"

    async def create(self, order_id: Union[str, CreateReservationRequest, Dict[str, Any]],
                     product_id: str = None, quantity: int = 1) -> Reservation:
        if isinstance(order_id, str):
            order_id = {"order_id": order_id, "product_id": product_id, "quantity": quantity}
        request = self._validate(CreateReservationRequest, order_id, "create")

        self.logger.info(
            "Creating reservation",
            order_id=request.order_id,
            product_id=request.product_id,
            quantity=request.quantity
        )
        data = await self._request(
            "create", "POST", "/reservations",
            json=request.to_payload(),
            ok_statuses=(200, 201),
            timeout=RESERVATION_TIMEOUT_SECONDS,
        )
        reservation = self._parse(Reservation, data, "create")
        self.logger.info(
            "Reservation created",
            reservation_id=reservation.reservation_id,
            order_id=request.order_id,
            expires_at=reservation.expires_at
        )
        return reservation

    async def confirm(self, reservation_id: str) -> ConfirmReservationResponse:
        self.logger.info("Confirming reservation", reservation_id=reservation_id)
        data = await self._request(
            "confirm", "POST", f"/reservations/{reservation_id}/confirm",
            json={},
            timeout=RESERVATION_TIMEOUT_SECONDS,
        )
        result = self._parse(ConfirmReservationResponse, data, "confirm")
        self.logger.info("Reservation confirmed", reservation_id=reservation_id, stock_ready=result.stock_ready)
        return result

    async def check_inventory(self, order_id: str) -> InventoryCheck:
        data = await self._request(
            "check_inventory", "GET", f"/inventory/{order_id}",
            timeout=RESERVATION_TIMEOUT_SECONDS,
        )
        return self._parse(InventoryCheck, data, "check_inventory")

    async def wait_for_inventory_ready(self, order_id: str, max_wait: float = 300.0,
                                       poll_interval: float = 5.0) -> InventoryCheck:
        """
        Poll ``check_inventory`` until stock is ready.

        Raises:
            G2AError: TIMEOUT once ``max_wait`` seconds have elapsed
        """
        start_time = time.monotonic()
        self.logger.info("Starting inventory polling", order_id=order_id, max_wait=max_wait, poll_interval=poll_interval)

        while True:
            elapsed = time.monotonic() - start_time
            if elapsed > max_wait:
                raise G2AError(
                    G2AErrorCode.TIMEOUT,
                    f"Inventory for order {order_id} did not become ready within {max_wait}s",
                    retryable=False,
                    endpoint=self.scope,
                    context={"order_id": order_id, "max_wait": max_wait, "elapsed": round(elapsed, 3)},
                )

            inventory = await self.check_inventory(order_id)
            if inventory.stock_ready:
                self.logger.info(
                    "Inventory ready",
                    order_id=order_id,
                    keys_count=len(inventory.keys or []),
                    elapsed=round(elapsed, 3)
                )
                return inventory

            self.logger.debug("Inventory not ready yet", order_id=order_id, elapsed=round(elapsed, 3))
            await asyncio.sleep(poll_interval)
