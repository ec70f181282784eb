# shop_api/services/inventory.py
from __future__ import annotations

from shop_api.errors import BusinessRuleError, NotFoundError, OptimisticLockError
from shop_api.repositories.product import Adjustment, AdjustmentResult, ProductRepository


class InventoryService:
    """
    Ajustări de stoc peste `ProductRepository.adjust_quantity`.

    Fiecare apel citește versiunea curentă chiar înainte de UPDATE (nu una
    citită mai devreme). Nu face commit: rulează în tranzacția apelantului.
    """

    def __init__(self, products: ProductRepository):
        self.products = products

    def _apply(self, product_id: int, delta: int) -> AdjustmentResult:
        current = self.products.read(product_id)
        if current is None:
            return AdjustmentResult(Adjustment.NOT_FOUND, product_id, delta)
        return self.products.adjust_quantity(product_id, delta, current.version)

    def reserve(self, product_id: int, quantity: int) -> AdjustmentResult:
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        return self._apply(product_id, -quantity)

    def release(self, product_id: int, quantity: int) -> AdjustmentResult:
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        return self._apply(product_id, quantity)

    def adjust(self, product_id: int, delta: int) -> AdjustmentResult:
        return self._apply(product_id, delta)

    @staticmethod
    def raise_for(result: AdjustmentResult) -> None:
        """Transformă o ajustare respinsă în eroarea de domeniu corespunzătoare."""
        if result.applied:
            return
        if result.reason is Adjustment.NOT_FOUND:
            raise NotFoundError(f"Product not found with id: {result.product_id}")
        if result.reason is Adjustment.INSUFFICIENT_QUANTITY:
            raise BusinessRuleError(
                f"Insufficient inventory for product: {result.product_id}. "
                f"Available: {result.quantity}, Requested: {-result.delta}"
            )
        raise OptimisticLockError("Product", result.product_id)
