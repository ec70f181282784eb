# shop_api/models/product.py
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import CheckConstraint, Index, Integer, Numeric, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from shop_api.database import Base
from shop_api.models.base import VersionedMixin


class Product(VersionedMixin, Base):
    """
    Produs cu stoc.

    Note:
    - `quantity >= 0` e garantat și de DB (CHECK), nu doar de UPDATE-ul condiționat.
    - `sku` e unic pe tot tabelul (inclusiv rânduri soft-deleted).
    - Index funcțional pe lower(name) pentru căutarea case-insensitive.
    """
    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_sku", "sku", unique=True),
        Index("ix_products_category", "category"),
        Index("ix_products_name_lower", func.lower(text("name"))),
        CheckConstraint("price >= 0", name="price_nonnegative"),
        CheckConstraint("quantity >= 0", name="quantity_nonnegative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    sku: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE", server_default="ACTIVE")

    def __repr__(self) -> str:
        name_preview = (self.name[:32] + "…") if self.name and len(self.name) > 33 else self.name
        return f"<Product id={self.id!r} sku={self.sku!r} name={name_preview!r} qty={self.quantity!r}>"
