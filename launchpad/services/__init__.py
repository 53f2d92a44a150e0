"""Service layer helpers"""

from .prices import PriceService, get_price_service

__all__ = [
    "PriceService",
    "get_price_service",
]
