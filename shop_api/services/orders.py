# shop_api/services/orders.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Tuple

from shop_api.core.logging import get_logger
from shop_api.domain.order_status import CANCELLABLE, OrderStatus, validate_transition
from shop_api.errors import BusinessRuleError, ConflictError, NotFoundError, OptimisticLockError
from shop_api.models import Order, OrderItem
from shop_api.pagination import Page, PageRequest
from shop_api.repositories.order import OrderRepository
from shop_api.repositories.product import ProductRepository
from shop_api.repositories.user import UserRepository
from shop_api.schemas.common import quantize_money
from shop_api.schemas.order import OrderCreate, OrderRead, OrderUpdate
from shop_api.services.base import TransactionalService
from shop_api.services.inventory import InventoryService

logger = get_logger("orders")


def generate_order_number() -> str:
    return "ORD-" + uuid.uuid4().hex[:8].upper()


@dataclass(frozen=True)
class RestockFailure:
    product_id: int
    quantity: int
    reason: str


@dataclass
class RestockReport:
    """Rezultatul refacerii stocului la anulare; eșecurile nu opresc anularea."""
    order_id: int
    failures: List[RestockFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def as_list(self) -> List[dict]:
        return [{"product_id": f.product_id, "quantity": f.quantity, "reason": f.reason} for f in self.failures]


class OrderService(TransactionalService):
    """
    Ciclul de viață al comenzii.

    - `create_order`: validare + comandă + linii + rezervări de stoc într-o
      singură tranzacție; orice eșec anulează tot.
    - `update_order_status`: tranziție validată + scriere versionată; la
      CANCELLED stocul se reface best-effort (eșecurile sunt logate și raportate).
    - `cancel_order`: doar din PENDING/CONFIRMED; reface stocul, apoi soft delete.
    - `update_order`: adrese și/sau status; NU reface stocul.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.orders = OrderRepository(self.db, self.catalog, self.paginator)
        self.users = UserRepository(self.db, self.catalog, self.paginator)
        self.products = ProductRepository(self.db, self.catalog, self.paginator)
        self.inventory = InventoryService(self.products)

    # --- read ---
    def _require(self, order_id: int) -> Order:
        order = self.orders.read(order_id)
        if order is None:
            raise NotFoundError(f"Order not found with id: {order_id}")
        self.orders.attach_items([order])
        return order

    def _page(self, items: List[Order], total: int, request: Optional[PageRequest]) -> Page[OrderRead]:
        self.orders.attach_items(items)
        return self.paginator.build_page([OrderRead.model_validate(o) for o in items], total, request)

    def get_order(self, order_id: int) -> Order:
        return self._require(order_id)

    def get_order_by_number(self, order_number: str) -> Order:
        order = self.orders.find_by_order_number(order_number)
        if order is None:
            raise NotFoundError(f"Order not found with number: {order_number}")
        self.orders.attach_items([order])
        return order

    def list_orders(self, request: Optional[PageRequest] = None) -> Page[OrderRead]:
        items, total = self.orders.find_page(request)
        return self._page(items, total, request)

    def list_orders_by_user(self, user_id: int, request: Optional[PageRequest] = None) -> Page[OrderRead]:
        if not self.users.exists(user_id):
            raise NotFoundError(f"User not found with id: {user_id}")
        items, total = self.orders.find_by_user(user_id, request)
        return self._page(items, total, request)

    def list_orders_by_status(self, status: OrderStatus, request: Optional[PageRequest] = None) -> Page[OrderRead]:
        items, total = self.orders.find_by_status(OrderStatus(status).value, request)
        return self._page(items, total, request)

    # --- write ---
    def create_order(self, data: OrderCreate, actor: Optional[str] = None) -> Order:
        with self.transaction("Order conflicts with existing data, please retry"):
            if not self.users.exists(data.user_id):
                raise NotFoundError(f"User not found with id: {data.user_id}")

            lines: List[Tuple[int, int, Decimal, Decimal]] = []
            total = Decimal("0.00")
            for line in data.items:
                product = self.products.read(line.product_id)
                if product is None:
                    raise NotFoundError(f"Product not found with id: {line.product_id}")
                if product.quantity < line.quantity:
                    raise BusinessRuleError(
                        f"Insufficient inventory for product: {product.name}. "
                        f"Available: {product.quantity}, Requested: {line.quantity}"
                    )
                unit_price = quantize_money(product.price)
                line_total = quantize_money(unit_price * line.quantity)
                total += line_total
                lines.append((product.id, line.quantity, unit_price, line_total))

            order = self.orders.insert(
                Order(
                    order_number=generate_order_number(),
                    user_id=data.user_id,
                    total_amount=quantize_money(total),
                    status=OrderStatus.PENDING.value,
                    shipping_address=data.shipping_address,
                    billing_address=data.billing_address,
                    version=1,
                    deleted=False,
                    created_by=actor,
                    updated_by=actor,
                )
            )
            for product_id, quantity, unit_price, line_total in lines:
                self.orders.add_item(
                    OrderItem(
                        order_id=order.id,
                        product_id=product_id,
                        quantity=quantity,
                        unit_price=unit_price,
                        total_price=line_total,
                    )
                )
                # versiunea e citită acum, nu cea de la validare
                self.inventory.raise_for(self.inventory.reserve(product_id, quantity))

        logger.info(
            "Order created: id=%s number=%s user=%s total=%s items=%d",
            order.id, order.order_number, order.user_id, order.total_amount, len(lines),
        )
        return self._require(order.id)

    def _restock(self, order: Order) -> RestockReport:
        report = RestockReport(order.id)
        for item in order.items:
            result = self.inventory.release(item.product_id, item.quantity)
            if not result.applied:
                logger.warning(
                    "Restock failed for order %s: product=%s qty=%s reason=%s",
                    order.id, item.product_id, item.quantity, result.reason.value,
                )
                report.failures.append(RestockFailure(item.product_id, item.quantity, result.reason.value))
        return report

    def update_order_status(
        self,
        order_id: int,
        status: OrderStatus,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Tuple[Order, RestockReport]:
        target = OrderStatus(status)
        with self.transaction():
            order = self._require(order_id)
            if expected_version is not None and expected_version != order.version:
                raise OptimisticLockError("Order", order_id)
            validate_transition(order.status, target)

            result = self.orders.write_if_version(
                order_id, {"status": target.value}, order.version if expected_version is None else expected_version,
                actor=actor,
            )
            if not result.applied:
                raise OptimisticLockError("Order", order_id)

            report = RestockReport(order_id)
            if target is OrderStatus.CANCELLED:
                report = self._restock(order)

        logger.info(
            "Order %s status -> %s (v%s, restock_failures=%d)",
            order_id, target.value, result.version, len(report.failures),
        )
        return self._require(order_id), report

    def update_order(self, order_id: int, data: OrderUpdate, actor: Optional[str] = None) -> Order:
        fields = data.model_dump(exclude_unset=True, exclude={"version"})
        with self.transaction():
            order = self._require(order_id)
            target = fields.pop("status", None)
            if target is not None:
                # aceeași regulă ca la PATCH /status: și "același status" e o tranziție ilegală
                validate_transition(order.status, target)
                fields["status"] = OrderStatus(target).value
            result = self.orders.write_if_version(order_id, fields, data.version, actor=actor)
            if not result.applied:
                raise OptimisticLockError("Order", order_id)
        # schimbarea de status pe calea asta nu atinge stocul
        logger.info("Order %s updated: fields=%s v%s", order_id, sorted(fields), result.version)
        return self._require(order_id)

    def cancel_order(self, order_id: int) -> Tuple[Order, RestockReport]:
        with self.transaction():
            order = self._require(order_id)
            current = OrderStatus(order.status)
            if current is OrderStatus.CANCELLED:
                raise BusinessRuleError("Order is already cancelled")
            if current not in CANCELLABLE:
                raise BusinessRuleError("Cannot cancel order that has been shipped or delivered")

            report = self._restock(order)
            if not self.orders.soft_delete_cancelled(order_id, [s.value for s in CANCELLABLE]):
                raise ConflictError("Order was modified by another transaction. Please refresh and try again.")

        # rândul e acum șters; refresh direct (citirile din catalog îl ignoră)
        self.db.refresh(order)
        self.orders.attach_items([order])
        logger.info("Order cancelled: id=%s restock_failures=%d", order_id, len(report.failures))
        return order, report
