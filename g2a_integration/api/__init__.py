from .base import BaseAPI
from .products import ProductsAPI
from .orders import OrdersAPI
from .offers import OffersAPI
from .reservations import ReservationsAPI, RESERVATION_TIMEOUT_SECONDS
from .jobs import JobsAPI
from .bestsellers import BestsellersAPI
from .price_simulations import PriceSimulationsAPI

__all__ = [
    'BaseAPI',
    'ProductsAPI',
    'OrdersAPI',
    'OffersAPI',
    'ReservationsAPI',
    'RESERVATION_TIMEOUT_SECONDS',
    'JobsAPI',
    'BestsellersAPI',
    'PriceSimulationsAPI',
]
