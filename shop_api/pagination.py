# shop_api/pagination.py
from __future__ import annotations

import math
import re
from dataclasses import dataclass, replace
from typing import Collection, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

SortDir = Literal["ASC", "DESC"]

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_]")

DEFAULT_SORT_COLUMN = "id"


@dataclass(frozen=True)
class PageRequest:
    """Cerere de paginare: `page` e 0-based."""
    page: int = 0
    size: int = 0
    sort_by: Optional[str] = None
    sort_dir: str = "ASC"


class Page(BaseModel, Generic[T]):
    """Răspuns paginat: listă + meta."""
    items: List[T]
    total: int
    page: int
    size: int
    total_pages: int
    first: bool
    last: bool


def sanitize_column(name: Optional[str]) -> str:
    """Păstrează doar [A-Za-z0-9_] (nu se interpolează niciodată altceva în SQL)."""
    if not name:
        return ""
    return _UNSAFE_RE.sub("", name)


class Paginator:
    def __init__(self, default_size: int = 20, max_size: int = 100):
        if default_size <= 0 or max_size <= 0:
            raise ValueError("page sizes must be positive")
        self.default_size = min(default_size, max_size)
        self.max_size = max_size

    def normalize(self, request: Optional[PageRequest]) -> PageRequest:
        if request is None:
            return PageRequest(page=0, size=self.default_size)
        page = max(0, int(request.page))
        size = int(request.size)
        if size <= 0:
            size = self.default_size
        elif size > self.max_size:
            size = self.max_size
        direction = "DESC" if (request.sort_dir or "").strip().upper() == "DESC" else "ASC"
        return replace(request, page=page, size=size, sort_dir=direction)

    @staticmethod
    def offset(request: PageRequest) -> int:
        return request.page * request.size

    def resolve_sort(self, request: PageRequest, sortable: Collection[str]) -> str:
        col = sanitize_column(request.sort_by)
        return col if col in sortable else DEFAULT_SORT_COLUMN

    def clause(self, request: Optional[PageRequest], sortable: Collection[str]) -> str:
        """
        Fragment ` ORDER BY ... LIMIT ... OFFSET ...` determinist.
        Sortarea are mereu tiebreaker pe id, altfel paginile se pot suprapune.
        """
        req = self.normalize(request)
        col = self.resolve_sort(req, sortable)
        order = f" ORDER BY {col} {req.sort_dir}"
        if col != DEFAULT_SORT_COLUMN:
            order += f", {DEFAULT_SORT_COLUMN} ASC"
        return f"{order} LIMIT {req.size} OFFSET {self.offset(req)}"

    def build_page(self, items: List[T], total: int, request: Optional[PageRequest]) -> Page[T]:
        req = self.normalize(request)
        total_pages = math.ceil(total / req.size) if total > 0 else 0
        return Page(
            items=items,
            total=total,
            page=req.page,
            size=req.size,
            total_pages=total_pages,
            first=req.page == 0,
            last=req.page >= total_pages - 1,
        )
