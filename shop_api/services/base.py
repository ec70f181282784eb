# shop_api/services/base.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shop_api.core.logging import get_logger
from shop_api.core.sql_catalog import SqlCatalog
from shop_api.errors import ConflictError
from shop_api.pagination import Paginator

logger = get_logger("tx")


class TransactionalService:
    """O operație de serviciu = o tranzacție (commit la final, rollback la orice eroare)."""

    def __init__(self, db: Session, catalog: SqlCatalog, paginator: Paginator):
        self.db = db
        self.catalog = catalog
        self.paginator = paginator

    @contextmanager
    def transaction(self, conflict_message: str = "Unique constraint violated.") -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("%s (%s)", conflict_message, getattr(e, "orig", e))
            raise ConflictError(conflict_message) from e
        except Exception:
            self.db.rollback()
            raise
