# shop_api/schemas/product.py
from __future__ import annotations

import re
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator

from shop_api.schemas.common import VersionedRead, quantize_money, strip_or_none

# SKU: litere/cifre + . _ - ; max 64; fără spații
SKU_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

ProductStatus = Literal["ACTIVE", "INACTIVE", "DISCONTINUED"]


def _sku(v: str) -> str:
    v = v.strip()
    if not SKU_RE.match(v):
        raise ValueError("Invalid SKU (allowed: letters, digits, . _ -, max 64)")
    return v


def _name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("name must not be empty")
    return v


def _price(v: Decimal) -> Decimal:
    if v < 0:
        raise ValueError("price must be >= 0")
    return quantize_money(v)


class ProductCreate(BaseModel):
    """Payload pentru creare produs."""
    sku: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(0, ge=0)
    category: Optional[str] = Field(None, max_length=100)
    status: ProductStatus = "ACTIVE"

    # --- Validators ---
    @field_validator("sku")
    @classmethod
    def _sku_validate(cls, v: str) -> str:
        return _sku(v)

    @field_validator("name")
    @classmethod
    def _name_strip_nonempty(cls, v: str) -> str:
        return _name(v)

    @field_validator("description", "category")
    @classmethod
    def _strip(cls, v: Optional[str]) -> Optional[str]:
        return strip_or_none(v)

    @field_validator("price")
    @classmethod
    def _price_quantize(cls, v: Decimal) -> Decimal:
        return _price(v)

    model_config = ConfigDict(
        # oferă exemple utile în OpenAPI
        json_schema_extra={
            "examples": [
                {
                    "sku": "TPA3116-2x50W-BLUE",
                    "name": "Amplificator audio TPA3116",
                    "description": "2x50W, radiator aluminiu",
                    "price": "129.90",
                    "quantity": 10,
                    "category": "audio",
                }
            ]
        }
    )


class ProductUpdate(BaseModel):
    """
    Update parțial; `version` e obligatorie.
    Stocul NU se modifică aici: folosește PATCH /products/{id}/quantity.
    """
    version: int = Field(..., ge=1)
    sku: Optional[str] = Field(None, min_length=1, max_length=64)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    category: Optional[str] = Field(None, max_length=100)
    status: Optional[ProductStatus] = None

    @field_validator("sku")
    @classmethod
    def _sku_validate(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _sku(v)

    @field_validator("name")
    @classmethod
    def _name_strip_nonempty(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _name(v)

    @field_validator("description", "category")
    @classmethod
    def _strip(cls, v: Optional[str]) -> Optional[str]:
        return strip_or_none(v)

    @field_validator("price")
    @classmethod
    def _price_quantize(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return None if v is None else _price(v)


class QuantityAdjust(BaseModel):
    """Delta de stoc: pozitiv = intrare, negativ = ieșire."""
    delta: int

    @field_validator("delta")
    @classmethod
    def _non_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("delta must not be zero")
        return v


class ProductRead(VersionedRead):
    """Răspuns pentru produs."""
    sku: str
    name: str
    description: Optional[str] = None
    price: Decimal
    quantity: int
    category: Optional[str] = None
    status: str
