# shop_api/repositories/user.py
from __future__ import annotations

from typing import List, Optional, Tuple

from shop_api.models import User
from shop_api.pagination import PageRequest
from shop_api.repositories.base import VersionedRepository, like_pattern


class UserRepository(VersionedRepository[User]):
    module = "user"
    model = User
    sortable = frozenset({"id", "email", "first_name", "last_name", "status", "role", "created_at", "updated_at"})

    def find_by_email(self, email: str) -> Optional[User]:
        return self._one("find_by_email", email=email)

    def exists_by_email(self, email: str) -> bool:
        return self._scalar("exists_by_email", email=email) > 0

    def find_by_status(self, status: str, request: Optional[PageRequest] = None) -> Tuple[List[User], int]:
        return self._page("find_by_status", "count_by_status", request, status=status)

    def search_by_name(self, query: str, request: Optional[PageRequest] = None) -> Tuple[List[User], int]:
        return self._page("search_by_name", "count_search", request, pattern=like_pattern(query))
