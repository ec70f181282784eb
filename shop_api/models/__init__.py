# shop_api/models/__init__.py
from shop_api.models.base import AuditMixin, VersionedMixin
from shop_api.models.user import User
from shop_api.models.product import Product
from shop_api.models.order import Order, OrderItem

__all__ = ["AuditMixin", "VersionedMixin", "User", "Product", "Order", "OrderItem"]
