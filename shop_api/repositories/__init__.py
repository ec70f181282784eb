from shop_api.repositories.base import VersionedRepository, WriteResult, WriteStatus, like_pattern
from shop_api.repositories.user import UserRepository
from shop_api.repositories.product import Adjustment, AdjustmentResult, ProductRepository
from shop_api.repositories.order import OrderRepository

__all__ = [
    "VersionedRepository",
    "WriteResult",
    "WriteStatus",
    "like_pattern",
    "UserRepository",
    "ProductRepository",
    "Adjustment",
    "AdjustmentResult",
    "OrderRepository",
]
