# shop_api/domain/order_status.py
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet

from shop_api.errors import BusinessRuleError


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


# Singurele tranziții legale; orice altă pereche e respinsă.
TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL: FrozenSet[OrderStatus] = frozenset(s for s, nxt in TRANSITIONS.items() if not nxt)

# Surse din care `cancel_order` are voie să pornească
CANCELLABLE: FrozenSet[OrderStatus] = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})


def can_transition(current: OrderStatus | str, target: OrderStatus | str) -> bool:
    return OrderStatus(target) in TRANSITIONS[OrderStatus(current)]


def validate_transition(current: OrderStatus | str, target: OrderStatus | str) -> None:
    """Ridică BusinessRuleError dacă `current -> target` nu e în tabelul de tranziții."""
    cur, tgt = OrderStatus(current), OrderStatus(target)
    if cur in TERMINAL:
        raise BusinessRuleError(f"Cannot change status of {cur.value} order")
    if tgt not in TRANSITIONS[cur]:
        raise BusinessRuleError(f"Invalid status transition from {cur.value} to {tgt.value}")


__all__ = ["OrderStatus", "TRANSITIONS", "TERMINAL", "CANCELLABLE", "can_transition", "validate_transition"]
