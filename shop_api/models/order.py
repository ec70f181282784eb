# shop_api/models/order.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shop_api.database import Base
from shop_api.models.base import VersionedMixin


class Order(VersionedMixin, Base):
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_order_number", "order_number", unique=True),
        Index("ix_orders_user_id", "user_id"),
        Index("ix_orders_status", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    order_number: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING", server_default="PENDING")
    shipping_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    billing_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    order_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    # Liniile se încarcă explicit (OrderRepository.attach_items), niciodată lazy.
    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem", viewonly=True, lazy="raise", order_by="OrderItem.id"
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id!r} number={self.order_number!r} status={self.status!r} v={self.version!r}>"


class OrderItem(Base):
    """Linie de comandă: snapshot de preț, fără versiune și fără soft delete."""
    __tablename__ = "order_items"
    __table_args__ = (
        Index("ix_order_items_order_id", "order_id"),
        Index("ix_order_items_product_id", "product_id"),
        CheckConstraint("quantity >= 1", name="quantity_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    def __repr__(self) -> str:
        return f"<OrderItem id={self.id!r} order_id={self.order_id!r} product_id={self.product_id!r} qty={self.quantity!r}>"
