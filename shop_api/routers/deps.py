# shop_api/routers/deps.py
from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, Header, Query, Request
from sqlalchemy.orm import Session

from shop_api.core.sql_catalog import SqlCatalog
from shop_api.database import get_db
from shop_api.pagination import PageRequest, Paginator
from shop_api.schemas.common import ErrorResponse
from shop_api.services.orders import OrderService
from shop_api.services.products import ProductService
from shop_api.services.users import UserService


def get_catalog(request: Request) -> SqlCatalog:
    return request.app.state.sql_catalog


def get_paginator(request: Request) -> Paginator:
    return request.app.state.paginator


def page_request(
    page: Annotated[int, Query(description="Pagina, 0-based (negativ → 0)")] = 0,
    size: Annotated[int, Query(description="Mărimea paginii (≤0 → implicit, plafonată la maxim)")] = 0,
    sort_by: Annotated[Optional[str], Query(max_length=64, description="Coloană de sortare (allow-list; altfel id)")] = None,
    sort_dir: Annotated[str, Query(description="ASC|DESC")] = "ASC",
) -> PageRequest:
    # normalizarea propriu-zisă o face Paginator
    return PageRequest(page=page, size=size, sort_by=sort_by, sort_dir=sort_dir)


def actor_header(
    x_actor: Annotated[Optional[str], Header(max_length=100, description="Autorul modificării (audit)")] = None,
) -> Optional[str]:
    return (x_actor or "").strip() or None


def get_user_service(
    db: Session = Depends(get_db),
    catalog: SqlCatalog = Depends(get_catalog),
    paginator: Paginator = Depends(get_paginator),
) -> UserService:
    return UserService(db, catalog, paginator)


def get_product_service(
    db: Session = Depends(get_db),
    catalog: SqlCatalog = Depends(get_catalog),
    paginator: Paginator = Depends(get_paginator),
) -> ProductService:
    return ProductService(db, catalog, paginator)


def get_order_service(
    db: Session = Depends(get_db),
    catalog: SqlCatalog = Depends(get_catalog),
    paginator: Paginator = Depends(get_paginator),
) -> OrderService:
    return OrderService(db, catalog, paginator)


PageParams = Annotated[PageRequest, Depends(page_request)]
Actor = Annotated[Optional[str], Depends(actor_header)]

# Documentare OpenAPI pentru anvelopa de eroare comună
ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Not found"},
    409: {"model": ErrorResponse, "description": "Conflict (duplicate or stale version)"},
    422: {"description": "Validation error or business rule violation"},
}
