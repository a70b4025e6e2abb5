# g2a_integration/batch/order_creator.py
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from g2a_integration.api.orders import OrdersAPI
from g2a_integration.batch.batch_operations import BatchOperations, BatchResult, remap_failures
from g2a_integration.schemas import CreateOrderRequest, OrderResponse
from g2a_integration.utils.enhanced_logging import get_logger


@dataclass
class BatchOrderRequest:
    product_id: str
    currency: str = "EUR"
    max_price: Optional[float] = None
    client_order_id: Optional[str] = None

    @classmethod
    def coerce(cls, value: Union["BatchOrderRequest", Dict[str, Any]]) -> "BatchOrderRequest":
        if isinstance(value, cls):
            return value
        return cls(
            product_id=value["product_id"],
            currency=value.get("currency", "EUR"),
            max_price=value.get("max_price"),
            client_order_id=value.get("client_order_id"),
        )


@dataclass
class BatchOrderResponse:
    order: OrderResponse
    client_order_id: Optional[str] = None


@dataclass
class PaidOrder:
    order: BatchOrderResponse
    paid: bool
    transaction_id: Optional[str] = None


class BatchOrderCreator:
    """
    Places many orders with small chunks and low concurrency, since each
    order commits funds on the partner side.
    """

    def __init__(self, orders_api: OrdersAPI, chunk_size: int = 5, max_concurrency: int = 2):
        self.orders_api = orders_api
        self.batch_operations = BatchOperations(chunk_size, max_concurrency, continue_on_error=True)
        self.logger = get_logger("batch.order_creator")

    async def create_orders(self, orders: List[Union[BatchOrderRequest, Dict[str, Any]]]) -> BatchResult:
        requests = [BatchOrderRequest.coerce(order) for order in orders]
        self.logger.info("Batch creating orders", count=len(requests))

        async def create_one(request: BatchOrderRequest, index: int) -> BatchOrderResponse:
            self.logger.debug(
                "Creating order",
                index=index,
                client_order_id=request.client_order_id,
                product_id=request.product_id
            )
            order = await self.orders_api.create(CreateOrderRequest(
                product_id=request.product_id,
                currency=request.currency,
                max_price=request.max_price,
            ))
            return BatchOrderResponse(order=order, client_order_id=request.client_order_id)

        return await self.batch_operations.execute(requests, create_one, "BatchOrderCreator.create_orders")

    async def create_and_pay_orders(self, orders: List[Union[BatchOrderRequest, Dict[str, Any]]]) -> BatchResult:
        """
        Create every order, then pay for the ones that were created.

        Failures from both steps are indexed by position in ``orders``.
        """
        self.logger.info("Batch creating and paying for orders", count=len(orders))
        create_result = await self.create_orders(orders)
        if create_result.failures:
            self.logger.warning("Some orders failed to create", failure_count=create_result.failure_count)
        not_created = set(create_result.failed_indices)
        created_positions = [i for i in range(len(orders)) if i not in not_created]

        async def pay_one(created: BatchOrderResponse, index: int) -> PaidOrder:
            self.logger.debug(
                "Paying for order",
                index=index,
                order_id=created.order.order_id,
                client_order_id=created.client_order_id
            )
            try:
                payment = await self.orders_api.pay(created.order.order_id)
            except Exception as e:
                self.logger.error("Failed to pay for order", order_id=created.order.order_id, error=str(e))
                raise
            return PaidOrder(order=created, paid=payment.status, transaction_id=payment.transaction_id)

        pay_result = await self.batch_operations.execute(
            create_result.successes, pay_one, "BatchOrderCreator.pay_orders"
        )
        pay_result.failures = sorted(
            create_result.failures + remap_failures(pay_result.failures, created_positions),
            key=lambda failure: failure.index,
        )
        pay_result.total_processed = pay_result.success_count + pay_result.failure_count
        pay_result.duration_ms += create_result.duration_ms
        return pay_result

    async def create_orders_with_retry(self, orders: List[Union[BatchOrderRequest, Dict[str, Any]]],
                                       max_retries: int = 2) -> BatchResult:
        """Re-run only the failed orders, up to ``max_retries`` extra rounds."""
        requests = [BatchOrderRequest.coerce(order) for order in orders]
        result = await self.create_orders(requests)
        retry_count = 0

        while result.failures and retry_count < max_retries:
            retry_count += 1
            failed_indices = result.failed_indices
            self.logger.info("Retrying failed orders", retry_count=retry_count, failure_count=len(failed_indices))

            retry_result = await self.create_orders([requests[i] for i in failed_indices])
            result.successes.extend(retry_result.successes)
            result.failures = remap_failures(retry_result.failures, failed_indices)
            result.duration_ms += retry_result.duration_ms

        result.total_processed = result.success_count + result.failure_count
        return result
