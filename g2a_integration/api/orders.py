# g2a_integration/api/orders.py
"""
Orders, Export API purchasing.

Payment failures share HTTP 403 and differ only by partner sub-code, so
``pay`` branches on the body ``code`` rather than on the status alone.
"""

import asyncio
from typing import Any, Dict, List, Optional, Union

import httpx

from g2a_integration.api.base import BaseAPI
from g2a_integration.exceptions import G2AError, G2AErrorCode
from g2a_integration.schemas import CreateOrderRequest, OrderDetails, OrderKey, OrderResponse, PayOrderResponse

PAYMENT_NOT_READY = "ORD03"
PAYMENT_IN_PROGRESS = "ORD05"
NOT_ENOUGH_FUNDS = "ORD112"
PAYMENT_TOO_LATE = "ORD114"
KEY_ALREADY_DOWNLOADED = "ORD004"

PAYMENT_FORBIDDEN_MESSAGES = {
    NOT_ENOUGH_FUNDS: "Not enough funds to pay for order",
    PAYMENT_TOO_LATE: "Payment is too late. Try with another order",
    PAYMENT_NOT_READY: "Payment is not ready yet. Try again later",
}


class OrdersAPI(BaseAPI):
    scope = "/orders"
    payment_retry_delay = 2.0

    def _order_not_found(self, order_id: str) -> G2AError:
        return G2AError(
            G2AErrorCode.ORDER_NOT_FOUND,
            f"Order not found: {order_id}",
            http_status=404,
            endpoint=self.scope,
            context={"order_id": order_id},
        )

    async def create(self, product_id: Union[str, CreateOrderRequest], currency: str = "EUR",
                     max_price: Optional[float] = None) -> OrderResponse:
        if isinstance(product_id, CreateOrderRequest):
            request = product_id
        else:
            request = self._validate(
                CreateOrderRequest,
                {"product_id": product_id, "currency": currency, "max_price": max_price},
                "create",
            )

        self.logger.info(
            "Creating order",
            product_id=request.product_id,
            currency=request.currency,
            max_price=request.max_price
        )
        data = await self._request("create", "POST", "/order", json=request.to_payload(), ok_statuses=(200, 201))
        order = self._parse(OrderResponse, data, "create")

        self.logger.info("Order created", order_id=order.order_id, price=order.price, currency=order.currency)
        return order

    async def get(self, order_id: str) -> OrderDetails:
        def on_error(response: httpx.Response):
            if response.status_code == 404:
                raise self._order_not_found(order_id)

        data = await self._request("get", "GET", f"/order/details/{order_id}", on_error=on_error)
        details = self._parse(OrderDetails, data, "get")
        self.logger.debug("Order details fetched", order_id=order_id, status=details.status)
        return details

    async def _pay_once(self, order_id: str) -> PayOrderResponse:
        def on_error(response: httpx.Response):
            if response.status_code == 404:
                raise self._order_not_found(order_id)
            if response.status_code == 402:
                raise G2AError(
                    G2AErrorCode.INVALID_REQUEST,
                    "Payment required or in progress",
                    error_code=PAYMENT_IN_PROGRESS,
                    http_status=402,
                    endpoint=self.scope,
                    context={"order_id": order_id},
                )
            if response.status_code == 403:
                code = self.partner_code(response)
                if code in PAYMENT_FORBIDDEN_MESSAGES:
                    raise G2AError(
                        G2AErrorCode.INVALID_REQUEST,
                        PAYMENT_FORBIDDEN_MESSAGES[code],
                        error_code=code,
                        http_status=403,
                        endpoint=self.scope,
                        context={"order_id": order_id},
                    )

        data = await self._request(
            "pay", "PUT", f"/order/pay/{order_id}",
            headers={"Content-Length": "0"},
            on_error=on_error,
        )
        return self._parse(PayOrderResponse, data, "pay")

    async def pay(self, order_id: str) -> PayOrderResponse:
        """
        Pay for an order.

        "Payment not ready" (ORD03) is retried exactly once after
        ``payment_retry_delay`` seconds. Insufficient funds and late payment
        are raised immediately.
        """
        self.logger.info("Paying for order", order_id=order_id)
        try:
            result = await self._pay_once(order_id)
        except G2AError as e:
            if e.error_code != PAYMENT_NOT_READY:
                raise
            self.logger.warning(
                "Payment not ready, retrying once",
                order_id=order_id,
                delay_seconds=self.payment_retry_delay
            )
            await asyncio.sleep(self.payment_retry_delay)
            result = await self._pay_once(order_id)

        self.logger.info("Order payment successful", order_id=order_id, transaction_id=result.transaction_id)
        return result

    async def get_key(self, order_id: str) -> OrderKey:
        """
        A key can be downloaded once; later calls raise INVALID_REQUEST
        with partner code ORD004.
        """
        def on_error(response: httpx.Response):
            if response.status_code == 404:
                raise self._order_not_found(order_id)
            if response.status_code == 400 and self.partner_code(response) == KEY_ALREADY_DOWNLOADED:
                raise G2AError(
                    G2AErrorCode.INVALID_REQUEST,
                    "Order key has been downloaded already",
                    error_code=KEY_ALREADY_DOWNLOADED,
                    http_status=400,
                    endpoint=self.scope,
                    context={"order_id": order_id},
                )

        self.logger.info("Fetching order key", order_id=order_id)
        data = await self._request("get_key", "GET", f"/order/key/{order_id}", on_error=on_error)
        key = self._parse(OrderKey, data, "get_key")
        self.logger.info("Order key fetched", order_id=order_id, is_file=key.is_file)
        return key

    async def batch_create(self, requests: List[Union[CreateOrderRequest, Dict[str, Any]]]) -> List[OrderResponse]:
        """Create orders sequentially; failures are logged and skipped."""
        self.logger.info("Batch creating orders", count=len(requests))
        orders = []
        errors = []

        for index, raw in enumerate(requests):
            try:
                request = self._validate(CreateOrderRequest, raw, "batch_create")
                orders.append(await self.create(request))
            except G2AError as e:
                errors.append({"index": index, "error": e.message, "code": e.code.value})

        self.logger.info(
            "Batch order creation completed",
            total_requested=len(requests),
            success_count=len(orders),
            error_count=len(errors)
        )
        if errors:
            self.logger.warning("Some orders failed to create", errors=errors)
        return orders
