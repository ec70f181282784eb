# shop_api/schemas/user.py
from __future__ import annotations

import re
from typing import Literal, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator

from shop_api.schemas.common import VersionedRead, strip_or_none

# Validare minimală; unicitatea e garantată de indexul unic pe email
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

UserStatus = Literal["ACTIVE", "INACTIVE", "SUSPENDED"]
UserRole = Literal["USER", "ADMIN", "MANAGER"]


def _normalize_email(v: str) -> str:
    v = v.strip().lower()
    if not EMAIL_RE.match(v):
        raise ValueError("Invalid email address")
    return v


def _name_nonempty(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("name fields must not be empty")
    return v


class UserCreate(BaseModel):
    email: str = Field(..., max_length=255)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)
    status: UserStatus = "ACTIVE"
    role: UserRole = "USER"

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def _names(cls, v: str) -> str:
        return _name_nonempty(v)

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: Optional[str]) -> Optional[str]:
        return strip_or_none(v)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "email": "ana.popescu@example.com",
                    "first_name": "Ana",
                    "last_name": "Popescu",
                    "phone": "+40700000000",
                }
            ]
        }
    )


class UserUpdate(BaseModel):
    """Update parțial; `version` e obligatorie (optimistic locking)."""
    version: int = Field(..., ge=1)
    email: Optional[str] = Field(None, max_length=255)
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)
    status: Optional[UserStatus] = None
    role: Optional[UserRole] = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _normalize_email(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def _names(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _name_nonempty(v)

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: Optional[str]) -> Optional[str]:
        return strip_or_none(v)


class UserRead(VersionedRead):
    email: str
    first_name: str
    last_name: str
    full_name: str
    phone: Optional[str] = None
    status: str
    role: str
