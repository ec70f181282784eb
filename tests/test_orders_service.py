# tests/test_orders_service.py
from __future__ import annotations

from decimal import Decimal

import itertools

import pytest
from sqlalchemy import func, select

from shop_api.domain.order_status import OrderStatus
from shop_api.errors import BusinessRuleError, ConflictError, NotFoundError, OptimisticLockError
from shop_api.models import Order, OrderItem, Product
from shop_api.repositories import Adjustment, AdjustmentResult
from shop_api.schemas.order import OrderCreate, OrderUpdate
from shop_api.services import orders as orders_module
from shop_api.services.orders import OrderService, generate_order_number


def _order(user_id: int, *lines, **kwargs) -> OrderCreate:
    return OrderCreate(
        user_id=user_id,
        items=[{"product_id": pid, "quantity": qty} for pid, qty in lines],
        **kwargs,
    )


def _product_state(db, product_id: int):
    return tuple(db.execute(select(Product.quantity, Product.version).where(Product.id == product_id)).one())


def _order_state(db, order_id: int):
    return tuple(db.execute(select(Order.status, Order.deleted, Order.version).where(Order.id == order_id)).one())


def _count_orders(db) -> int:
    return db.execute(select(func.count()).select_from(Order)).scalar_one()


@pytest.fixture()
def user(make_user):
    return make_user()


def test_order_number_format():
    n = generate_order_number()
    assert n.startswith("ORD-") and len(n) == 12
    assert n[4:] == n[4:].upper()


# --- create ----------------------------------------------------------------------
def test_create_order_reserves_stock(orders, db, user, make_product):
    p = make_product(quantity=10, price="10.00")

    order = orders.create_order(_order(user.id, (p.id, 3), shipping_address="  Str. Lungă 5 "), actor="api")

    assert order.total_amount == Decimal("30.00")
    assert order.status == OrderStatus.PENDING.value
    assert order.version == 1 and order.created_by == "api"
    assert order.shipping_address == "Str. Lungă 5"
    assert [(i.product_id, i.quantity, i.unit_price, i.total_price) for i in order.items] == [
        (p.id, 3, Decimal("10.00"), Decimal("30.00"))
    ]
    assert _product_state(db, p.id) == (7, 2)


def test_create_order_total_is_sum_of_lines(orders, user, make_product):
    a = make_product(price="19.99")
    b = make_product(price="0.10")
    order = orders.create_order(_order(user.id, (a.id, 2), (b.id, 3)))
    assert order.total_amount == sum(i.total_price for i in order.items) == Decimal("40.28")


def test_create_order_insufficient_stock_persists_nothing(orders, db, user, make_product):
    p = make_product(quantity=10)
    with pytest.raises(BusinessRuleError, match="Insufficient inventory"):
        orders.create_order(_order(user.id, (p.id, 11)))
    assert _count_orders(db) == 0
    assert _product_state(db, p.id) == (10, 1)


def test_create_order_failure_on_second_line_rolls_back_first(orders, db, user, make_product):
    # același produs pe două linii: validarea trece per linie, a doua rezervare nu
    p = make_product(quantity=5)
    with pytest.raises(BusinessRuleError):
        orders.create_order(_order(user.id, (p.id, 3), (p.id, 3)))
    assert _count_orders(db) == 0
    assert db.execute(select(func.count()).select_from(OrderItem)).scalar_one() == 0
    assert _product_state(db, p.id) == (5, 1)


def test_create_order_stale_reservation_rolls_back(orders, db, user, make_product, monkeypatch):
    p = make_product(quantity=10)

    def _stale(product_id, delta):
        return AdjustmentResult(Adjustment.STALE_VERSION, product_id, delta, quantity=10, version=2)

    monkeypatch.setattr(orders.inventory, "_apply", _stale)
    with pytest.raises(OptimisticLockError):
        orders.create_order(_order(user.id, (p.id, 1)))
    assert _count_orders(db) == 0
    assert _product_state(db, p.id) == (10, 1)


def test_create_order_unknown_user_or_product(orders, user, make_product):
    p = make_product()
    with pytest.raises(NotFoundError, match="User not found"):
        orders.create_order(_order(999, (p.id, 1)))
    with pytest.raises(NotFoundError, match="Product not found"):
        orders.create_order(_order(user.id, (999, 1)))


def test_create_order_with_deleted_product_is_rejected(orders, products, user, make_product):
    p = make_product()
    products.delete(p.id)
    with pytest.raises(NotFoundError):
        orders.create_order(_order(user.id, (p.id, 1)))


# --- status ----------------------------------------------------------------------
def test_status_walk_increments_version(orders, db, user, make_product):
    p = make_product(quantity=10)
    order = orders.create_order(_order(user.id, (p.id, 1)))

    for expected, target in enumerate((OrderStatus.CONFIRMED, OrderStatus.SHIPPED, OrderStatus.DELIVERED), start=2):
        order, report = orders.update_order_status(order.id, target)
        assert order.status == target.value and order.version == expected
        assert report.ok

    with pytest.raises(BusinessRuleError, match="Cannot change status of DELIVERED order"):
        orders.update_order_status(order.id, OrderStatus.CANCELLED)
    assert _product_state(db, p.id) == (9, 2)


def test_invalid_transition_leaves_order_untouched(orders, db, user, make_product):
    order = orders.create_order(_order(user.id, (make_product().id, 1)))
    with pytest.raises(BusinessRuleError, match="Invalid status transition from PENDING to SHIPPED"):
        orders.update_order_status(order.id, OrderStatus.SHIPPED)
    assert _order_state(db, order.id) == ("PENDING", False, 1)


def test_concurrent_status_updates_one_conflicts(registry, catalog, paginator, orders, user, make_product):
    order = orders.create_order(_order(user.id, (make_product().id, 1)))
    order, _ = orders.update_order_status(order.id, OrderStatus.CONFIRMED)
    assert order.version == 2

    with registry.session_scope() as s1, registry.session_scope() as s2:
        first = OrderService(s1, catalog, paginator)
        second = OrderService(s2, catalog, paginator)
        # ambii clienți au citit versiunea 2
        shipped, _ = first.update_order_status(order.id, OrderStatus.SHIPPED, expected_version=2)
        assert shipped.version == 3
        with pytest.raises(OptimisticLockError):
            second.update_order_status(order.id, OrderStatus.CANCELLED, expected_version=2)

    with registry.session_scope() as s:
        assert _order_state(s, order.id) == ("SHIPPED", False, 3)


def test_cancel_via_status_restocks(orders, db, user, make_product):
    p = make_product(quantity=10)
    order = orders.create_order(_order(user.id, (p.id, 4)))
    assert _product_state(db, p.id) == (6, 2)

    order, report = orders.update_order_status(order.id, OrderStatus.CANCELLED)

    assert report.ok and order.status == "CANCELLED"
    assert _product_state(db, p.id) == (10, 3)
    # pe calea asta comanda nu e ștearsă
    assert _order_state(db, order.id) == ("CANCELLED", False, 2)


def test_update_order_to_cancelled_does_not_restock(orders, db, user, make_product):
    p = make_product(quantity=10)
    order = orders.create_order(_order(user.id, (p.id, 4)))

    updated = orders.update_order(order.id, OrderUpdate(version=1, status=OrderStatus.CANCELLED))

    assert updated.status == "CANCELLED" and updated.version == 2
    assert _product_state(db, p.id) == (6, 2)


def test_update_order_addresses_and_stale_version(orders, user, make_product):
    order = orders.create_order(_order(user.id, (make_product().id, 1)))
    updated = orders.update_order(order.id, OrderUpdate(version=1, billing_address="Bd. Unirii 1"))
    assert updated.billing_address == "Bd. Unirii 1" and updated.version == 2
    with pytest.raises(OptimisticLockError):
        orders.update_order(order.id, OrderUpdate(version=1, shipping_address="altundeva"))


# --- cancel ----------------------------------------------------------------------
def test_cancel_confirmed_order_restores_stock_and_deletes(orders, db, user, make_product):
    p = make_product(quantity=10)
    order = orders.create_order(_order(user.id, (p.id, 3)))
    orders.update_order_status(order.id, OrderStatus.CONFIRMED)
    assert _product_state(db, p.id)[0] == 7

    cancelled, report = orders.cancel_order(order.id)

    assert report.ok
    assert cancelled.status == "CANCELLED" and cancelled.deleted is True
    assert [i.product_id for i in cancelled.items] == [p.id]
    assert _product_state(db, p.id)[0] == 10
    assert _order_state(db, order.id) == ("CANCELLED", True, 2)  # soft delete nu schimbă versiunea
    with pytest.raises(NotFoundError):
        orders.get_order(order.id)


def test_cancel_shipped_order_is_rejected(orders, db, user, make_product):
    p = make_product(quantity=10)
    order = orders.create_order(_order(user.id, (p.id, 3)))
    orders.update_order_status(order.id, OrderStatus.CONFIRMED)
    orders.update_order_status(order.id, OrderStatus.SHIPPED)
    before = (_order_state(db, order.id), _product_state(db, p.id))

    with pytest.raises(BusinessRuleError, match="shipped or delivered"):
        orders.cancel_order(order.id)

    assert (_order_state(db, order.id), _product_state(db, p.id)) == before


def test_cancel_already_cancelled_order(orders, user, make_product):
    order = orders.create_order(_order(user.id, (make_product().id, 1)))
    orders.update_order_status(order.id, OrderStatus.CANCELLED)
    with pytest.raises(BusinessRuleError, match="already cancelled"):
        orders.cancel_order(order.id)


def test_cancel_reports_restock_failures(orders, products, db, user, make_product):
    kept = make_product(quantity=10)
    gone = make_product(quantity=10)
    order = orders.create_order(_order(user.id, (kept.id, 2), (gone.id, 5)))
    products.delete(gone.id)

    cancelled, report = orders.cancel_order(order.id)

    assert cancelled.deleted is True
    assert not report.ok
    assert report.as_list() == [{"product_id": gone.id, "quantity": 5, "reason": "NOT_FOUND"}]
    assert _product_state(db, kept.id)[0] == 10
    assert _product_state(db, gone.id)[0] == 5


# --- listări ---------------------------------------------------------------------
def test_list_orders_by_user_and_status(orders, make_user, make_product):
    u1, u2 = make_user(), make_user()
    p = make_product(quantity=100)
    o1 = orders.create_order(_order(u1.id, (p.id, 1)))
    orders.create_order(_order(u1.id, (p.id, 2)))
    orders.create_order(_order(u2.id, (p.id, 3)))
    orders.update_order_status(o1.id, OrderStatus.CONFIRMED)

    page = orders.list_orders_by_user(u1.id)
    assert page.total == 2 and all(len(o.items) == 1 for o in page.items)

    page = orders.list_orders_by_status(OrderStatus.CONFIRMED)
    assert [o.id for o in page.items] == [o1.id]

    assert orders.list_orders().total == 3

    with pytest.raises(NotFoundError):
        orders.list_orders_by_user(999)


def test_get_order_by_number(orders, user, make_product):
    order = orders.create_order(_order(user.id, (make_product().id, 1)))
    found = orders.get_order_by_number(order.order_number)
    assert found.id == order.id and len(found.items) == 1
    with pytest.raises(NotFoundError):
        orders.get_order_by_number("ORD-NOPE0000")


# --- update_order trece prin același tabel de tranziții ---------------------------------
LEGAL = {
    ("PENDING", "CONFIRMED"),
    ("PENDING", "CANCELLED"),
    ("CONFIRMED", "SHIPPED"),
    ("CONFIRMED", "CANCELLED"),
    ("SHIPPED", "DELIVERED"),
}

# drumul (prin PATCH /status) până la fiecare status de pornire
WALK = {
    "PENDING": [],
    "CONFIRMED": ["CONFIRMED"],
    "SHIPPED": ["CONFIRMED", "SHIPPED"],
    "DELIVERED": ["CONFIRMED", "SHIPPED", "DELIVERED"],
    "CANCELLED": ["CANCELLED"],
}


@pytest.mark.parametrize("current, target", list(itertools.product([s.value for s in OrderStatus], repeat=2)))
def test_update_order_status_field_follows_transition_table(orders, db, user, make_product, current, target):
    order = orders.create_order(_order(user.id, (make_product().id, 1)))
    for step in WALK[current]:
        order, _ = orders.update_order_status(order.id, OrderStatus(step))
    version = order.version

    payload = OrderUpdate(version=version, status=OrderStatus(target), shipping_address="Str. Nouă 2")
    if (current, target) in LEGAL:
        updated = orders.update_order(order.id, payload)
        assert updated.status == target and updated.version == version + 1
    else:
        with pytest.raises(BusinessRuleError):
            orders.update_order(order.id, payload)
        # nici statusul, nici adresa nu s-au schimbat
        assert _order_state(db, order.id) == (current, False, version)
        assert db.execute(select(Order.shipping_address).where(Order.id == order.id)).scalar_one() is None


def test_update_order_without_status_skips_transition_check(orders, user, make_product):
    order = orders.create_order(_order(user.id, (make_product().id, 1)))
    for step in ("CONFIRMED", "SHIPPED", "DELIVERED"):
        order, _ = orders.update_order_status(order.id, OrderStatus(step))
    updated = orders.update_order(order.id, OrderUpdate(version=order.version, billing_address="Bd. 1"))
    assert updated.status == "DELIVERED" and updated.billing_address == "Bd. 1"


def test_interleaved_status_updates_loser_hits_conditional_write(
    registry, catalog, paginator, orders, user, make_product, monkeypatch
):
    """Ambele servicii citesc versiunea 2; primul scrie între citirea și scrierea celui de-al doilea."""
    order = orders.create_order(_order(user.id, (make_product().id, 1)))
    order, _ = orders.update_order_status(order.id, OrderStatus.CONFIRMED)
    assert order.version == 2

    with registry.session_scope() as s1, registry.session_scope() as s2:
        first = OrderService(s1, catalog, paginator)
        second = OrderService(s2, catalog, paginator)
        real_write = second.orders.write_if_version
        seen = []

        def _write_after_competitor(order_id, fields, expected_version, **kwargs):
            seen.append(expected_version)
            shipped, _ = first.update_order_status(order_id, OrderStatus.SHIPPED, expected_version=2)
            assert shipped.version == 3
            return real_write(order_id, fields, expected_version, **kwargs)

        monkeypatch.setattr(second.orders, "write_if_version", _write_after_competitor)
        with pytest.raises(OptimisticLockError):
            second.update_order_status(order.id, OrderStatus.CANCELLED, expected_version=2)
        assert seen == [2]  # a trecut de verificarea inițială, a pierdut la UPDATE

    with registry.session_scope() as s:
        assert _order_state(s, order.id) == ("SHIPPED", False, 3)


def test_create_order_integrity_conflict_has_neutral_message(orders, db, user, make_product, monkeypatch):
    p = make_product(quantity=10)
    existing = orders.create_order(_order(user.id, (p.id, 1)))
    monkeypatch.setattr(orders_module, "generate_order_number", lambda: existing.order_number)

    with pytest.raises(ConflictError) as ei:
        orders.create_order(_order(user.id, (p.id, 2)))
    assert "order number" not in ei.value.message.lower()
    assert "retry" in ei.value.message
    assert _count_orders(db) == 1
    assert _product_state(db, p.id) == (9, 2)
