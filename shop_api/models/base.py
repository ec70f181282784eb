# shop_api/models/base.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, false, func
from sqlalchemy.orm import Mapped, mapped_column


class AuditMixin:
    """Coloane de audit comune (created/updated at/by)."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(100), nullable=True)


class VersionedMixin(AuditMixin):
    """
    Entitate cu versiune + soft delete.

    - `version` pornește de la 1 și crește cu exact 1 la fiecare scriere acceptată
      (vezi `VersionedRepository.write_if_version`).
    - `deleted=True` face rândul invizibil pentru toate citirile.
    """
    deleted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default="1"
    )
