# tests/conftest.py
from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Iterator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from shop_api.core.settings import Settings
from shop_api.core.sql_catalog import SqlCatalog
from shop_api.database import DataSourceRegistry
from shop_api.main import create_app
from shop_api.pagination import Paginator
from shop_api.schemas.product import ProductCreate
from shop_api.schemas.user import UserCreate
from shop_api.services.orders import OrderService
from shop_api.services.products import ProductService
from shop_api.services.users import UserService


# --- Config -------------------------------------------------------------------
@pytest.fixture()
def settings(tmp_path) -> Settings:
    """Fiecare test are propriul fișier SQLite (izolare completă)."""
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        SQLALCHEMY_CREATE_ALL=True,
        DB_CONNECT_RETRIES=1,
        LOG_LEVEL="WARNING",
        PAGE_SIZE_DEFAULT=20,
        PAGE_SIZE_MAX=100,
    )


@pytest.fixture(scope="session")
def catalog() -> SqlCatalog:
    return SqlCatalog.load("shop_api.queries")


@pytest.fixture()
def paginator() -> Paginator:
    return Paginator(default_size=20, max_size=100)


@pytest.fixture()
def registry(settings: Settings) -> Iterator[DataSourceRegistry]:
    reg = DataSourceRegistry.from_settings(settings)
    reg.create_all()
    yield reg
    reg.dispose()


@pytest.fixture()
def db(registry: DataSourceRegistry) -> Iterator[Session]:
    session = registry.session()
    try:
        yield session
    finally:
        session.close()


# --- Servicii -----------------------------------------------------------------
@pytest.fixture()
def users(db, catalog, paginator) -> UserService:
    return UserService(db, catalog, paginator)


@pytest.fixture()
def products(db, catalog, paginator) -> ProductService:
    return ProductService(db, catalog, paginator)


@pytest.fixture()
def orders(db, catalog, paginator) -> OrderService:
    return OrderService(db, catalog, paginator)


@pytest.fixture()
def make_user(users: UserService):
    def _make(email: Optional[str] = None, **kwargs):
        payload = {
            "email": email or f"user_{uuid.uuid4().hex[:8]}@example.com",
            "first_name": kwargs.pop("first_name", "Ana"),
            "last_name": kwargs.pop("last_name", "Popescu"),
            **kwargs,
        }
        return users.create(UserCreate(**payload))
    return _make


@pytest.fixture()
def make_product(products: ProductService):
    def _make(quantity: int = 10, price: str = "10.00", sku: Optional[str] = None, **kwargs):
        payload = {
            "sku": sku or f"SKU-TST-{uuid.uuid4().hex[:10]}",
            "name": kwargs.pop("name", f"Prod_{uuid.uuid4().hex[:8]}"),
            "price": Decimal(price),
            "quantity": quantity,
            **kwargs,
        }
        return products.create(ProductCreate(**payload))
    return _make


# --- Client HTTP (in-process) ---------------------------------------------------
@pytest.fixture()
def client(settings: Settings) -> Iterator[TestClient]:
    """TestClient ca context manager → rulează lifespan (registry, catalog, create_all)."""
    with TestClient(create_app(settings)) as c:
        yield c
