# shop_api/repositories/base.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, FrozenSet, Generic, List, Mapping, Optional, Tuple, Type, TypeVar

from sqlalchemy import false, func, select, text, update
from sqlalchemy.orm import Session

from shop_api.core.logging import get_logger
from shop_api.core.sql_catalog import SqlCatalog
from shop_api.pagination import PageRequest, Paginator

logger = get_logger("store")

M = TypeVar("M")

# Coloane gestionate exclusiv de store; nu pot veni din `fields`
PROTECTED_COLUMNS: FrozenSet[str] = frozenset(
    {"id", "version", "deleted", "created_at", "updated_at", "created_by"}
)


def like_pattern(query: str) -> str:
    """Subșir case-insensitive pentru `LIKE :pattern ESCAPE '\\'`; `%` și `_` din input sunt literale."""
    q = query.strip().lower()
    q = q.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{q}%"


class WriteStatus(str, Enum):
    APPLIED = "APPLIED"
    STALE = "STALE"


@dataclass(frozen=True)
class WriteResult:
    status: WriteStatus
    entity_id: int
    version: Optional[int] = None  # versiunea nouă, doar pentru APPLIED

    @property
    def applied(self) -> bool:
        return self.status is WriteStatus.APPLIED


class VersionedRepository(Generic[M]):
    """
    Store generic pentru entități cu `version` + `deleted`.

    Citirile folosesc SQL din catalog (`<module>/<operatie>.sql`) mapat pe model
    prin `from_statement`, cu `populate_existing` ca o recitire să vadă mereu
    rândul curent, nu copia din identity map.

    Scrierile sunt UPDATE-uri condiționate (Core) de forma
    `WHERE id = :id AND version = :expected AND NOT deleted`; rezultatul se
    decide exclusiv pe rowcount. Repository-ul nu face commit: tranzacția
    aparține serviciului.
    """

    module: ClassVar[str] = ""
    model: ClassVar[Type[Any]]
    sortable: ClassVar[FrozenSet[str]] = frozenset({"id"})

    def __init__(self, db: Session, catalog: SqlCatalog, paginator: Paginator):
        self.db = db
        self.catalog = catalog
        self.paginator = paginator

    # --- helpers ---
    def _sql(self, operation: str) -> str:
        return self.catalog.get(self.module, operation)

    def _typed(self, sql: str):
        # potrivire pe nume: coloanele textuale primesc tipurile din model (Numeric, DateTime, Boolean)
        return text(sql).columns(**{c.name: c.type for c in self.model.__table__.c})

    def _entities(self, sql: str, params: Mapping[str, Any]) -> List[M]:
        stmt = (
            select(self.model)
            .from_statement(self._typed(sql))
            .execution_options(populate_existing=True)
        )
        return list(self.db.execute(stmt, dict(params)).scalars())

    def _one(self, operation: str, **params: Any) -> Optional[M]:
        rows = self._entities(self._sql(operation), params)
        return rows[0] if rows else None

    def _scalar(self, operation: str, **params: Any) -> int:
        return int(self.db.execute(text(self._sql(operation)), params).scalar_one() or 0)

    def _page(
        self, operation: str, count_operation: str, request: Optional[PageRequest], **params: Any
    ) -> Tuple[List[M], int]:
        total = self._scalar(count_operation, **params)
        sql = self._sql(operation) + self.paginator.clause(request, self.sortable)
        return self._entities(sql, params), total

    # --- read ---
    def read(self, entity_id: int) -> Optional[M]:
        """Entitatea ne-ștearsă sau None."""
        return self._one("find_by_id", id=entity_id)

    find_by_id = read

    def exists(self, entity_id: int) -> bool:
        return self.read(entity_id) is not None

    def count(self) -> int:
        return self._scalar("count")

    def find_page(self, request: Optional[PageRequest] = None) -> Tuple[List[M], int]:
        return self._page("find_all", "count", request)

    # --- write ---
    def insert(self, entity: M) -> M:
        """INSERT prin ORM; flush ca să avem cheia generată."""
        self.db.add(entity)
        self.db.flush()
        return entity

    def write_if_version(
        self,
        entity_id: int,
        fields: Mapping[str, Any],
        expected_version: int,
        *,
        actor: Optional[str] = None,
    ) -> WriteResult:
        """
        Aplică `fields` doar dacă rândul are încă `expected_version`.

        APPLIED: exact un rând modificat, versiunea devine `expected_version + 1`.
        STALE: niciun rând (versiune consumată, rând șters sau inexistent);
        starea din DB rămâne neatinsă, deci reapelarea cu aceeași versiune e sigură.
        """
        bad = PROTECTED_COLUMNS.intersection(fields)
        if bad:
            raise ValueError(f"Columns managed by the store cannot be written: {sorted(bad)}")

        table = self.model.__table__
        values = dict(fields)
        values["version"] = expected_version + 1
        values["updated_at"] = func.now()
        if actor is not None:
            values["updated_by"] = actor

        stmt = (
            update(table)
            .where(
                table.c.id == entity_id,
                table.c.version == expected_version,
                table.c.deleted == false(),
            )
            .values(**values)
        )
        rowcount = self.db.execute(stmt).rowcount
        if rowcount == 1:
            logger.debug("%s %s written: v%s -> v%s", self.module, entity_id, expected_version, expected_version + 1)
            return WriteResult(WriteStatus.APPLIED, entity_id, expected_version + 1)

        logger.warning("%s %s stale write rejected (expected v%s)", self.module, entity_id, expected_version)
        return WriteResult(WriteStatus.STALE, entity_id)

    def _soft_delete(self, entity_id: int, *conditions: Any, **values: Any) -> bool:
        table = self.model.__table__
        stmt = (
            update(table)
            .where(table.c.id == entity_id, table.c.deleted == false(), *conditions)
            .values(deleted=True, updated_at=func.now(), **values)
        )
        return self.db.execute(stmt).rowcount == 1

    def soft_delete(self, entity_id: int) -> bool:
        """Marchează rândul ca șters; `version` rămâne neschimbată."""
        return self._soft_delete(entity_id)


__all__ = ["VersionedRepository", "WriteResult", "WriteStatus", "PROTECTED_COLUMNS", "like_pattern"]
