# shop_api/services/products.py
from __future__ import annotations

from typing import Optional

from shop_api.core.logging import get_logger
from shop_api.errors import ConflictError, NotFoundError, OptimisticLockError
from shop_api.models import Product
from shop_api.pagination import Page, PageRequest
from shop_api.repositories.product import ProductRepository
from shop_api.schemas.product import ProductCreate, ProductRead, ProductUpdate
from shop_api.services.base import TransactionalService
from shop_api.services.inventory import InventoryService

logger = get_logger("products")

_CLEARABLE = frozenset({"description", "category"})


class ProductService(TransactionalService):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.products = ProductRepository(self.db, self.catalog, self.paginator)
        self.inventory = InventoryService(self.products)

    def _page(self, items, total, request) -> Page[ProductRead]:
        return self.paginator.build_page([ProductRead.model_validate(p) for p in items], total, request)

    def get(self, product_id: int) -> Product:
        product = self.products.read(product_id)
        if product is None:
            raise NotFoundError(f"Product not found with id: {product_id}")
        return product

    def get_by_sku(self, sku: str) -> Product:
        product = self.products.find_by_sku(sku)
        if product is None:
            raise NotFoundError(f"Product not found with SKU: {sku}")
        return product

    def list(self, request: Optional[PageRequest] = None) -> Page[ProductRead]:
        items, total = self.products.find_page(request)
        return self._page(items, total, request)

    def list_by_category(self, category: str, request: Optional[PageRequest] = None) -> Page[ProductRead]:
        items, total = self.products.find_by_category(category, request)
        return self._page(items, total, request)

    def search(self, query: str, request: Optional[PageRequest] = None) -> Page[ProductRead]:
        items, total = self.products.search_by_name(query, request)
        return self._page(items, total, request)

    def create(self, data: ProductCreate, actor: Optional[str] = None) -> Product:
        message = f"Product with SKU already exists: {data.sku}"
        with self.transaction(message):
            if self.products.exists_by_sku(data.sku):
                raise ConflictError(message)
            product = self.products.insert(
                Product(**data.model_dump(), version=1, deleted=False, created_by=actor, updated_by=actor)
            )
        self.db.refresh(product)
        logger.info("Product created: id=%s sku=%s qty=%s", product.id, product.sku, product.quantity)
        return product

    def update(self, product_id: int, data: ProductUpdate, actor: Optional[str] = None) -> Product:
        fields = {
            k: v for k, v in data.model_dump(exclude_unset=True, exclude={"version"}).items()
            if v is not None or k in _CLEARABLE
        }
        message = f"Product with SKU already exists: {fields.get('sku')}"
        with self.transaction(message):
            current = self.get(product_id)
            if "sku" in fields and fields["sku"] != current.sku and self.products.exists_by_sku(fields["sku"]):
                raise ConflictError(message)
            result = self.products.write_if_version(product_id, fields, data.version, actor=actor)
            if not result.applied:
                raise OptimisticLockError("Product", product_id)
        logger.info("Product updated: id=%s v%s", product_id, result.version)
        return self.get(product_id)

    def adjust_quantity(self, product_id: int, delta: int) -> Product:
        with self.transaction():
            result = self.inventory.adjust(product_id, delta)
            self.inventory.raise_for(result)
        logger.info("Product %s quantity %+d -> %s", product_id, delta, result.quantity)
        return self.get(product_id)

    def delete(self, product_id: int) -> None:
        with self.transaction():
            if not self.products.soft_delete(product_id):
                raise NotFoundError(f"Product not found with id: {product_id}")
        logger.info("Product soft-deleted: id=%s", product_id)
