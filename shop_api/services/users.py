# shop_api/services/users.py
from __future__ import annotations

from typing import Optional

from shop_api.core.logging import get_logger
from shop_api.errors import ConflictError, NotFoundError, OptimisticLockError
from shop_api.models import User
from shop_api.pagination import Page, PageRequest
from shop_api.repositories.user import UserRepository
from shop_api.schemas.user import UserCreate, UserRead, UserUpdate
from shop_api.services.base import TransactionalService

logger = get_logger("users")

# coloane care pot fi golite explicit (null) la update
_CLEARABLE = frozenset({"phone"})


class UserService(TransactionalService):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.users = UserRepository(self.db, self.catalog, self.paginator)

    def _page(self, items, total, request) -> Page[UserRead]:
        return self.paginator.build_page([UserRead.model_validate(u) for u in items], total, request)

    def get(self, user_id: int) -> User:
        user = self.users.read(user_id)
        if user is None:
            raise NotFoundError(f"User not found with id: {user_id}")
        return user

    def get_by_email(self, email: str) -> User:
        user = self.users.find_by_email(email.strip().lower())
        if user is None:
            raise NotFoundError(f"User not found with email: {email}")
        return user

    def list(self, request: Optional[PageRequest] = None) -> Page[UserRead]:
        items, total = self.users.find_page(request)
        return self._page(items, total, request)

    def list_by_status(self, status: str, request: Optional[PageRequest] = None) -> Page[UserRead]:
        items, total = self.users.find_by_status(status, request)
        return self._page(items, total, request)

    def search(self, query: str, request: Optional[PageRequest] = None) -> Page[UserRead]:
        items, total = self.users.search_by_name(query, request)
        return self._page(items, total, request)

    def create(self, data: UserCreate, actor: Optional[str] = None) -> User:
        message = f"User with email already exists: {data.email}"
        with self.transaction(message):
            if self.users.exists_by_email(data.email):
                raise ConflictError(message)
            user = self.users.insert(
                User(**data.model_dump(), version=1, deleted=False, created_by=actor, updated_by=actor)
            )
        self.db.refresh(user)
        logger.info("User created: id=%s email=%s", user.id, user.email)
        return user

    def update(self, user_id: int, data: UserUpdate, actor: Optional[str] = None) -> User:
        fields = {
            k: v for k, v in data.model_dump(exclude_unset=True, exclude={"version"}).items()
            if v is not None or k in _CLEARABLE
        }
        message = f"User with email already exists: {fields.get('email')}"
        with self.transaction(message):
            current = self.get(user_id)
            if "email" in fields and fields["email"] != current.email and self.users.exists_by_email(fields["email"]):
                raise ConflictError(message)
            result = self.users.write_if_version(user_id, fields, data.version, actor=actor)
            if not result.applied:
                raise OptimisticLockError("User", user_id)
        logger.info("User updated: id=%s v%s", user_id, result.version)
        return self.get(user_id)

    def delete(self, user_id: int) -> None:
        with self.transaction():
            if not self.users.soft_delete(user_id):
                raise NotFoundError(f"User not found with id: {user_id}")
        logger.info("User soft-deleted: id=%s", user_id)
