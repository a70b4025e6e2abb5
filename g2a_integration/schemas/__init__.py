from .base import G2ABaseSchema, PageMeta
from .products import ProductFilters, ProductListResponse, G2A_TIMESTAMP_PATTERN
from .orders import CreateOrderRequest, OrderResponse, OrderDetails, OrderKey, PayOrderResponse
from .offers import (
    OfferType,
    OfferVisibility,
    CreateOfferRequest,
    UpdateOfferRequest,
    OfferFilters,
    CreateOfferResponse,
    Offer,
    OffersPage,
    InventoryKind,
    InventoryPayload,
    InventoryUploadResponse,
)
from .reservations import CreateReservationRequest, Reservation, ConfirmReservationResponse, InventoryCheck
from .jobs import Job, JobStatus, TERMINAL_FAILURE_STATUSES
from .pricing import PriceSimulationRequest, PriceSimulation, BestsellerFilters, Bestseller, BestsellersPage
from .webhooks import WebhookEvent

__all__ = [
    "G2ABaseSchema",
    "PageMeta",
    "ProductFilters",
    "ProductListResponse",
    "G2A_TIMESTAMP_PATTERN",
    "CreateOrderRequest",
    "OrderResponse",
    "OrderDetails",
    "OrderKey",
    "PayOrderResponse",
    "OfferType",
    "OfferVisibility",
    "CreateOfferRequest",
    "UpdateOfferRequest",
    "OfferFilters",
    "CreateOfferResponse",
    "Offer",
    "OffersPage",
    "InventoryKind",
    "InventoryPayload",
    "InventoryUploadResponse",
    "CreateReservationRequest",
    "Reservation",
    "ConfirmReservationResponse",
    "InventoryCheck",
    "Job",
    "JobStatus",
    "TERMINAL_FAILURE_STATUSES",
    "PriceSimulationRequest",
    "PriceSimulation",
    "BestsellerFilters",
    "Bestseller",
    "BestsellersPage",
    "WebhookEvent",
]
