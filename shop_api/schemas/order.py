# shop_api/schemas/order.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator

from shop_api.domain.order_status import OrderStatus
from shop_api.schemas.common import VersionedRead, strip_or_none


class OrderItemCreate(BaseModel):
    product_id: int = Field(..., ge=1)
    quantity: int = Field(..., ge=1)


class OrderCreate(BaseModel):
    user_id: int = Field(..., ge=1)
    items: List[OrderItemCreate] = Field(..., min_length=1)
    shipping_address: Optional[str] = Field(None, max_length=500)
    billing_address: Optional[str] = Field(None, max_length=500)

    @field_validator("shipping_address", "billing_address")
    @classmethod
    def _strip(cls, v: Optional[str]) -> Optional[str]:
        return strip_or_none(v)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "user_id": 1,
                    "items": [{"product_id": 1, "quantity": 3}],
                    "shipping_address": "Str. Exemplu 1, București",
                }
            ]
        }
    )


class OrderUpdate(BaseModel):
    """
    Update complet (adrese și/sau status) într-o singură scriere versionată.
    Schimbarea de status de aici NU reface stocul (doar PATCH /status și DELETE o fac).
    """
    version: int = Field(..., ge=1)
    status: Optional[OrderStatus] = None
    shipping_address: Optional[str] = Field(None, max_length=500)
    billing_address: Optional[str] = Field(None, max_length=500)

    @field_validator("shipping_address", "billing_address")
    @classmethod
    def _strip(cls, v: Optional[str]) -> Optional[str]:
        return strip_or_none(v)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    # dacă lipsește, scrierea e condiționată de versiunea tocmai citită
    version: Optional[int] = Field(None, ge=1)


class OrderItemRead(BaseModel):
    id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class RestockFailureRead(BaseModel):
    product_id: int
    quantity: int
    reason: str


class OrderRead(VersionedRead):
    order_number: str
    user_id: int
    total_amount: Decimal
    status: OrderStatus
    shipping_address: Optional[str] = None
    billing_address: Optional[str] = None
    order_date: Optional[datetime] = None
    deleted: bool = False
    items: List[OrderItemRead] = Field(default_factory=list)
    restock_failures: List[RestockFailureRead] = Field(default_factory=list)
