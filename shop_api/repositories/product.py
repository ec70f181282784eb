# shop_api/repositories/product.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from sqlalchemy import false, func, text, update

from shop_api.core.logging import get_logger
from shop_api.models import Product
from shop_api.pagination import PageRequest
from shop_api.repositories.base import VersionedRepository, like_pattern

logger = get_logger("inventory")


class Adjustment(str, Enum):
    APPLIED = "APPLIED"
    STALE_VERSION = "STALE_VERSION"
    INSUFFICIENT_QUANTITY = "INSUFFICIENT_QUANTITY"
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class AdjustmentResult:
    reason: Adjustment
    product_id: int
    delta: int
    quantity: Optional[int] = None  # cantitatea observată după încercare
    version: Optional[int] = None

    @property
    def applied(self) -> bool:
        return self.reason is Adjustment.APPLIED


class ProductRepository(VersionedRepository[Product]):
    module = "product"
    model = Product
    sortable = frozenset({"id", "sku", "name", "price", "quantity", "category", "status", "created_at", "updated_at"})

    def find_by_sku(self, sku: str) -> Optional[Product]:
        return self._one("find_by_sku", sku=sku)

    def exists_by_sku(self, sku: str) -> bool:
        return self._scalar("exists_by_sku", sku=sku) > 0

    def find_by_category(self, category: str, request: Optional[PageRequest] = None) -> Tuple[List[Product], int]:
        return self._page("find_by_category", "count_by_category", request, category=category)

    def search_by_name(self, query: str, request: Optional[PageRequest] = None) -> Tuple[List[Product], int]:
        return self._page("search_by_name", "count_search", request, pattern=like_pattern(query))

    def adjust_quantity(self, product_id: int, delta: int, expected_version: int) -> AdjustmentResult:
        """
        Ajustare atomică de stoc: un singur UPDATE condiționat de versiune,
        de `deleted = false` și de `quantity + delta >= 0`.

        Acceptarea e decisă doar de UPDATE. Citirea de după servește numai la
        clasificarea motivului (și la raportarea cantității curente).
        """
        table = Product.__table__
        stmt = (
            update(table)
            .where(
                table.c.id == product_id,
                table.c.version == expected_version,
                table.c.deleted == false(),
                table.c.quantity + delta >= 0,
            )
            .values(
                quantity=table.c.quantity + delta,
                version=expected_version + 1,
                updated_at=func.now(),
            )
        )
        applied = self.db.execute(stmt).rowcount == 1
        state = self.db.execute(text(self._sql("find_state")), {"id": product_id}).mappings().first()

        if applied:
            logger.debug("Product %s quantity %+d applied (v%s)", product_id, delta, expected_version + 1)
            return AdjustmentResult(
                Adjustment.APPLIED, product_id, delta,
                quantity=state["quantity"] if state else None, version=expected_version + 1,
            )

        if state is None or state["deleted"]:
            reason = Adjustment.NOT_FOUND
        elif state["quantity"] + delta < 0:
            # refuzat indiferent de versiune; reîncercarea nu ar ajuta
            reason = Adjustment.INSUFFICIENT_QUANTITY
        else:
            reason = Adjustment.STALE_VERSION
        logger.warning(
            "Product %s quantity %+d rejected: %s (expected v%s)",
            product_id, delta, reason.value, expected_version,
        )
        return AdjustmentResult(
            reason, product_id, delta,
            quantity=None if state is None else state["quantity"],
            version=None if state is None else state["version"],
        )
