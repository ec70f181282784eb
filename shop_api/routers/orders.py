# shop_api/routers/orders.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from shop_api.domain.order_status import OrderStatus
from shop_api.pagination import Page
from shop_api.routers.deps import ERROR_RESPONSES, Actor, PageParams, get_order_service
from shop_api.models import Order
from shop_api.schemas.order import OrderCreate, OrderRead, OrderStatusUpdate, OrderUpdate, RestockFailureRead
from shop_api.services.orders import OrderService, RestockReport

router = APIRouter(prefix="/orders", tags=["orders"], responses=ERROR_RESPONSES)


def _with_report(order: Order, report: RestockReport) -> OrderRead:
    failures = [RestockFailureRead(**f) for f in report.as_list()]
    return OrderRead.model_validate(order).model_copy(update={"restock_failures": failures})


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED, summary="Create an order")
def create_order(payload: OrderCreate, actor: Actor, svc: OrderService = Depends(get_order_service)):
    """
    Creează comanda și rezervă stocul pentru fiecare linie, într-o singură tranzacție.
    - 404: user/produs inexistent
    - 422: stoc insuficient
    - 409: produs modificat concurent (reîncearcă)
    """
    return svc.create_order(payload, actor=actor)


@router.get("", response_model=Page[OrderRead], summary="List orders (paged)")
def list_orders(response: Response, req: PageParams, svc: OrderService = Depends(get_order_service)):
    page = svc.list_orders(req)
    response.headers["X-Total-Count"] = str(page.total)
    return page


@router.get("/number/{order_number}", response_model=OrderRead, summary="Get an order by order number")
def get_order_by_number(order_number: str, svc: OrderService = Depends(get_order_service)):
    return svc.get_order_by_number(order_number)


@router.get("/user/{user_id}", response_model=Page[OrderRead], summary="List orders of a user")
def list_orders_by_user(
    user_id: int, response: Response, req: PageParams, svc: OrderService = Depends(get_order_service)
):
    page = svc.list_orders_by_user(user_id, req)
    response.headers["X-Total-Count"] = str(page.total)
    return page


@router.get("/status/{order_status}", response_model=Page[OrderRead], summary="List orders by status")
def list_orders_by_status(
    order_status: OrderStatus, response: Response, req: PageParams, svc: OrderService = Depends(get_order_service)
):
    page = svc.list_orders_by_status(order_status, req)
    response.headers["X-Total-Count"] = str(page.total)
    return page


@router.get("/{order_id}", response_model=OrderRead, summary="Get an order by id")
def get_order(order_id: int, svc: OrderService = Depends(get_order_service)):
    return svc.get_order(order_id)


@router.put("/{order_id}", response_model=OrderRead, summary="Update addresses and/or status (requires version)")
def update_order(order_id: int, payload: OrderUpdate, actor: Actor, svc: OrderService = Depends(get_order_service)):
    """Schimbarea de status pe această rută NU reface stocul; folosește PATCH /status sau DELETE."""
    return svc.update_order(order_id, payload, actor=actor)


@router.patch("/{order_id}/status", response_model=OrderRead, summary="Change order status")
def update_order_status(
    order_id: int, payload: OrderStatusUpdate, actor: Actor, svc: OrderService = Depends(get_order_service)
):
    order, report = svc.update_order_status(order_id, payload.status, payload.version, actor=actor)
    return _with_report(order, report)


@router.delete("/{order_id}", response_model=OrderRead, summary="Cancel an order (restock + soft delete)")
def cancel_order(order_id: int, svc: OrderService = Depends(get_order_service)):
    order, report = svc.cancel_order(order_id)
    return _with_report(order, report)
