# shop_api/errors.py
from __future__ import annotations


class ShopError(Exception):
    """Baza pentru erorile de domeniu; `kind` ajunge în răspunsul JSON."""
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ShopError):
    """Entitatea (după id sau cheie naturală) lipsește sau e soft-deleted."""
    kind = "not_found"


class ConflictError(ShopError):
    """Încălcare de unicitate (SKU, email, order number) sau scriere concurentă."""
    kind = "conflict"


class OptimisticLockError(ConflictError):
    """Versiunea trimisă nu mai corespunde rândului din DB."""
    kind = "stale_version"

    def __init__(self, entity: str, entity_id: int):
        super().__init__(
            f"{entity} was modified by another transaction. Please refresh and try again."
        )
        self.entity = entity
        self.entity_id = entity_id


class BusinessRuleError(ShopError):
    """Tranziție de status invalidă, stoc insuficient, anulare interzisă."""
    kind = "business_rule"


class ConfigurationError(ShopError):
    kind = "configuration"


class SqlCatalogError(ConfigurationError):
    """Lipsește un fișier .sql: eroare fatală de configurare, nu se reîncearcă."""
    pass


__all__ = [
    "ShopError",
    "NotFoundError",
    "ConflictError",
    "OptimisticLockError",
    "BusinessRuleError",
    "ConfigurationError",
    "SqlCatalogError",
]
