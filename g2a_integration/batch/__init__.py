from .batch_operations import BatchOperations, BatchResult, BatchFailure, remap_failures
from .product_fetcher import BatchProductFetcher
from .order_creator import BatchOrderCreator, BatchOrderRequest, BatchOrderResponse, PaidOrder
from .price_updater import (
    BatchPriceUpdater,
    PriceUpdateRequest,
    PriceUpdateResult,
    PriceRecommendation,
    PriceBatchResult,
)

__all__ = [
    'BatchOperations',
    'BatchResult',
    'BatchFailure',
    'remap_failures',
    'BatchProductFetcher',
    'BatchOrderCreator',
    'BatchOrderRequest',
    'BatchOrderResponse',
    'PaidOrder',
    'BatchPriceUpdater',
    'PriceUpdateRequest',
    'PriceUpdateResult',
    'PriceRecommendation',
    'PriceBatchResult',
]
