# shop_api/routers/products.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from shop_api.pagination import Page
from shop_api.routers.deps import ERROR_RESPONSES, Actor, PageParams, get_product_service
from shop_api.schemas.product import ProductCreate, ProductRead, ProductUpdate, QuantityAdjust
from shop_api.services.products import ProductService

router = APIRouter(prefix="/products", tags=["products"], responses=ERROR_RESPONSES)


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED, summary="Create a product")
def create_product(payload: ProductCreate, actor: Actor, svc: ProductService = Depends(get_product_service)):
    return svc.create(payload, actor=actor)


@router.get("", response_model=Page[ProductRead], summary="List products (paged)")
def list_products(response: Response, req: PageParams, svc: ProductService = Depends(get_product_service)):
    """
    Returnează produse paginate.
    - `page`: 0-based
    - `size`: plafonat la PAGE_SIZE_MAX
    - `sort_by`: id|sku|name|price|quantity|category|status|created_at|updated_at (altfel id)
    """
    page = svc.list(req)
    # Header util pentru UI-uri/tablere
    response.headers["X-Total-Count"] = str(page.total)
    return page


@router.get("/search", response_model=Page[ProductRead], summary="Search products by name")
def search_products(
    response: Response,
    req: PageParams,
    q: str = Query(..., min_length=1, max_length=255, description="Substring case-insensitive în nume"),
    svc: ProductService = Depends(get_product_service),
):
    page = svc.search(q, req)
    response.headers["X-Total-Count"] = str(page.total)
    return page


@router.get("/sku/{sku}", response_model=ProductRead, summary="Get a product by SKU")
def get_product_by_sku(sku: str, svc: ProductService = Depends(get_product_service)):
    return svc.get_by_sku(sku)


@router.get("/category/{category}", response_model=Page[ProductRead], summary="List products in a category")
def list_products_by_category(
    category: str, response: Response, req: PageParams, svc: ProductService = Depends(get_product_service)
):
    page = svc.list_by_category(category, req)
    response.headers["X-Total-Count"] = str(page.total)
    return page


@router.get("/{product_id}", response_model=ProductRead, summary="Get a product by id")
def get_product(product_id: int, svc: ProductService = Depends(get_product_service)):
    return svc.get(product_id)


@router.put("/{product_id}", response_model=ProductRead, summary="Update a product (requires version)")
def update_product(
    product_id: int, payload: ProductUpdate, actor: Actor, svc: ProductService = Depends(get_product_service)
):
    return svc.update(product_id, payload, actor=actor)


@router.patch("/{product_id}/quantity", response_model=ProductRead, summary="Adjust stock by a delta")
def adjust_product_quantity(
    product_id: int, payload: QuantityAdjust, svc: ProductService = Depends(get_product_service)
):
    return svc.adjust_quantity(product_id, payload.delta)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Soft-delete a product")
def delete_product(product_id: int, svc: ProductService = Depends(get_product_service)):
    svc.delete(product_id)
    return None
