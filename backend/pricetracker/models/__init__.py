from pricetracker.models.store import Store
from pricetracker.models.product import Product
from pricetracker.models.price_history import PriceHistory
from pricetracker.models.user import UserProfile, PointTransaction

__all__ = [
    "Store",
    "Product",
    "PriceHistory",
    "UserProfile",
    "PointTransaction",
]
