# shop_api/repositories/order.py
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import bindparam, select, text
from sqlalchemy.orm.attributes import set_committed_value

from shop_api.models import Order, OrderItem
from shop_api.pagination import PageRequest
from shop_api.repositories.base import VersionedRepository


class OrderRepository(VersionedRepository[Order]):
    module = "order"
    model = Order
    sortable = frozenset({"id", "order_number", "user_id", "total_amount", "status", "order_date", "created_at", "updated_at"})

    def find_by_order_number(self, order_number: str) -> Optional[Order]:
        return self._one("find_by_order_number", order_number=order_number)

    def find_by_user(self, user_id: int, request: Optional[PageRequest] = None) -> Tuple[List[Order], int]:
        return self._page("find_by_user", "count_by_user", request, user_id=user_id)

    def find_by_status(self, status: str, request: Optional[PageRequest] = None) -> Tuple[List[Order], int]:
        return self._page("find_by_status", "count_by_status", request, status=status)

    # --- items ---
    def find_items(self, order_ids: Sequence[int]) -> Dict[int, List[OrderItem]]:
        """Liniile pentru mai multe comenzi dintr-un singur SELECT, grupate pe order_id."""
        grouped: Dict[int, List[OrderItem]] = {oid: [] for oid in order_ids}
        if not grouped:
            return grouped
        stmt = (
            select(OrderItem)
            .from_statement(
                text(self._sql("find_items"))
                .bindparams(bindparam("order_ids", expanding=True))
                .columns(**{c.name: c.type for c in OrderItem.__table__.c})
            )
            .execution_options(populate_existing=True)
        )
        for item in self.db.execute(stmt, {"order_ids": list(grouped)}).scalars():
            grouped[item.order_id].append(item)
        return grouped

    def attach_items(self, orders: Iterable[Order]) -> List[Order]:
        """Populează `order.items` (relația e lazy="raise", deci trebuie încărcată explicit)."""
        orders = list(orders)
        grouped = self.find_items([o.id for o in orders])
        for order in orders:
            set_committed_value(order, "items", grouped.get(order.id, []))
        return orders

    def add_item(self, item: OrderItem) -> OrderItem:
        self.db.add(item)
        self.db.flush()
        return item

    def soft_delete_cancelled(self, order_id: int, allowed_from: Iterable[str]) -> bool:
        """
        Soft delete + status CANCELLED, doar dacă statusul curent e încă în `allowed_from`.
        0 rânduri = comanda a fost între timp anulată/modificată de altcineva.
        """
        table = Order.__table__
        return self._soft_delete(
            order_id,
            table.c.status.in_(list(allowed_from)),
            status="CANCELLED",
        )
