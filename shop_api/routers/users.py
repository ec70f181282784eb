# shop_api/routers/users.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from shop_api.pagination import Page
from shop_api.routers.deps import ERROR_RESPONSES, Actor, PageParams, get_user_service
from shop_api.schemas.user import UserCreate, UserRead, UserStatus, UserUpdate
from shop_api.services.users import UserService

router = APIRouter(prefix="/users", tags=["users"], responses=ERROR_RESPONSES)


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED, summary="Create a user")
def create_user(payload: UserCreate, actor: Actor, svc: UserService = Depends(get_user_service)):
    return svc.create(payload, actor=actor)


@router.get("", response_model=Page[UserRead], summary="List users (paged)")
def list_users(response: Response, req: PageParams, svc: UserService = Depends(get_user_service)):
    page = svc.list(req)
    response.headers["X-Total-Count"] = str(page.total)
    return page


@router.get("/search", response_model=Page[UserRead], summary="Search users by first/last name")
def search_users(
    response: Response,
    req: PageParams,
    q: str = Query(..., min_length=1, max_length=100, description="Substring case-insensitive"),
    svc: UserService = Depends(get_user_service),
):
    page = svc.search(q, req)
    response.headers["X-Total-Count"] = str(page.total)
    return page


@router.get("/email/{email}", response_model=UserRead, summary="Get a user by email")
def get_user_by_email(email: str, svc: UserService = Depends(get_user_service)):
    return svc.get_by_email(email)


@router.get("/status/{user_status}", response_model=Page[UserRead], summary="List users by status")
def list_users_by_status(
    user_status: UserStatus, response: Response, req: PageParams, svc: UserService = Depends(get_user_service)
):
    page = svc.list_by_status(user_status, req)
    response.headers["X-Total-Count"] = str(page.total)
    return page


@router.get("/{user_id}", response_model=UserRead, summary="Get a user by id")
def get_user(user_id: int, svc: UserService = Depends(get_user_service)):
    return svc.get(user_id)


@router.put("/{user_id}", response_model=UserRead, summary="Update a user (requires version)")
def update_user(user_id: int, payload: UserUpdate, actor: Actor, svc: UserService = Depends(get_user_service)):
    return svc.update(user_id, payload, actor=actor)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Soft-delete a user")
def delete_user(user_id: int, svc: UserService = Depends(get_user_service)):
    svc.delete(user_id)
    return None
