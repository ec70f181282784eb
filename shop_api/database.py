# shop_api/database.py
from __future__ import annotations

import re
from contextlib import contextmanager
from typing import Dict, Generator, Iterator, List, Optional, Union

from fastapi import Request
from sqlalchemy import MetaData, create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from shop_api.core.logging import get_logger
from shop_api.core.settings import Settings

logger = get_logger("db")

# -----------------------------
# Helpers
# -----------------------------
def _mask_url(url: str) -> str:
    try:
        u = make_url(url)
        if u.password:
            u = u.set(password="***")
        return u.render_as_string(hide_password=False)
    except Exception:
        return url

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

def _sanitize_search_path(raw: str) -> str:
    """
    Acceptă doar identificatori ne-citați separați prin virgulă.
    Ex. 'app,public'. Dacă nu trece validarea, întoarce "" (nu setăm nimic).
    """
    parts = [p.strip() for p in (raw or "").split(",") if p.strip()]
    if not parts or not all(_IDENT_RE.fullmatch(p) for p in parts):
        return ""
    # elimină duplicate păstrând ordinea
    seen = set()
    uniq: List[str] = []
    for p in parts:
        if p not in seen:
            seen.add(p)
            uniq.append(p)
    return ",".join(uniq)

# -----------------------------
# Naming convention pentru Alembic/op.f()
# -----------------------------
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Fără schema explicită: pe Postgres schema țintă vine din DB_SEARCH_PATH,
# iar SQLite (dev/teste) nu are scheme.
metadata = MetaData(naming_convention=NAMING_CONVENTION)
Base = declarative_base(metadata=metadata)

# -----------------------------
# Engine factory
# -----------------------------
def _build_engine_kwargs(url: str, settings: Settings) -> dict:
    kwargs: dict = {
        "echo": settings.DB_ECHO,
        "pool_pre_ping": True,
    }

    if url.startswith("sqlite"):
        # SQLite: single-thread în driver → dezactivează check_same_thread
        kwargs["connect_args"] = {"check_same_thread": False}
        # In-memory → StaticPool (altfel fiecare conexiune are DB separat)
        if url in {"sqlite://", "sqlite:///:memory:", "sqlite+pysqlite:///:memory:"}:
            kwargs["poolclass"] = StaticPool
        else:
            # Pentru fișiere, NullPool e ok (pooling are beneficii reduse la SQLite)
            kwargs["poolclass"] = NullPool
        return kwargs

    # Postgres / MySQL
    kwargs.update(
        {
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_recycle": settings.DB_POOL_RECYCLE,
            "pool_timeout": settings.DB_POOL_TIMEOUT,
            "pool_use_lifo": settings.DB_POOL_LIFO,
        }
    )

    if url.startswith("postgresql"):
        # ---- libpq options (NU ca statements) ----
        pg_options = []
        search_path = _sanitize_search_path(settings.DB_SEARCH_PATH)
        if search_path:
            pg_options.append(f"-c search_path={search_path}")
        if settings.DB_STATEMENT_TIMEOUT_MS:
            pg_options.append(f"-c statement_timeout={int(settings.DB_STATEMENT_TIMEOUT_MS)}")
        connect_args: dict = {}
        if pg_options:
            connect_args["options"] = " ".join(pg_options)
        if settings.DB_APPLICATION_NAME:
            connect_args["application_name"] = settings.DB_APPLICATION_NAME
        if connect_args:
            kwargs["connect_args"] = connect_args

    return kwargs


def build_engine(url: str, settings: Settings) -> Engine:
    return create_engine(url, **_build_engine_kwargs(url, settings))


# -----------------------------
# Registry: nume logic -> engine + session factory
# -----------------------------
class DataSourceRegistry:
    """
    Conexiunile DB disponibile aplicației, construite o singură dată la pornire.

    - `primary` e obligatoriu și nu poate fi eliminat.
    - `add`/`remove` există pentru baze suplimentare; numele sunt unice.
    """

    def __init__(self, primary_name: str, primary_engine: Engine, settings: Optional[Settings] = None):
        self.primary_name = primary_name
        self._settings = settings
        self._engines: Dict[str, Engine] = {}
        self._sessions: Dict[str, sessionmaker] = {}
        self._register(primary_name, primary_engine)

    @classmethod
    def from_settings(cls, settings: Settings) -> "DataSourceRegistry":
        registry = cls(settings.PRIMARY_DB_NAME, build_engine(settings.DATABASE_URL, settings), settings)
        for name, url in settings.EXTRA_DATABASES.items():
            registry.add(name, url)
        logger.info("DataSource registry ready: %s (primary=%s)", registry.names(), registry.primary_name)
        return registry

    def _register(self, name: str, engine: Engine) -> None:
        self._engines[name] = engine
        # expire_on_commit=False → obiectele rămân utilizabile după commit (evită re-load imediat)
        self._sessions[name] = sessionmaker(
            bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
        )
        logger.info("Datasource %r registered: %s", name, _mask_url(engine.url.render_as_string(hide_password=False)))

    def add(self, name: str, target: Union[str, Engine]) -> Engine:
        """Înregistrează o bază suplimentară (URL sau engine gata construit); numele trebuie să fie nou."""
        if not name or not _IDENT_RE.fullmatch(name):
            raise ValueError(f"Invalid datasource name: {name!r}")
        if name in self._engines:
            raise ValueError(f"Datasource {name!r} already exists")
        engine = build_engine(target, self._settings or Settings()) if isinstance(target, str) else target
        self._register(name, engine)
        return engine

    def remove(self, name: str) -> bool:
        if name == self.primary_name:
            raise ValueError("Cannot remove primary datasource")
        engine = self._engines.pop(name, None)
        if engine is None:
            return False
        self._sessions.pop(name, None)
        engine.dispose()
        logger.info("Datasource %r removed", name)
        return True

    def names(self) -> List[str]:
        return sorted(self._engines)

    def engine(self, name: Optional[str] = None) -> Engine:
        key = name or self.primary_name
        try:
            return self._engines[key]
        except KeyError:
            raise KeyError(f"Unknown datasource: {key!r}") from None

    @property
    def primary(self) -> Engine:
        return self._engines[self.primary_name]

    def session(self, name: Optional[str] = None) -> Session:
        key = name or self.primary_name
        try:
            return self._sessions[key]()
        except KeyError:
            raise KeyError(f"Unknown datasource: {key!r}") from None

    @contextmanager
    def session_scope(self, name: Optional[str] = None) -> Iterator[Session]:
        """
        Context manager util în scripturi/teste (non-FastAPI).
        Exemplu:
            with registry.session_scope() as db:
                db.add(obj)
        """
        db = self.session(name)
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create_all(self) -> None:
        """Creează tabelele din modele pe primary (prototip/teste; în producție: Alembic)."""
        from shop_api import models  # noqa: F401
        Base.metadata.create_all(bind=self.primary)

    def dispose(self) -> None:
        for engine in self._engines.values():
            engine.dispose()


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    FastAPI dependency pentru o sesiune SQLAlchemy închisă garantat.
    Face rollback automat dacă apare o excepție în request handler.
    """
    registry: DataSourceRegistry = request.app.state.datasources
    db = registry.session()
    try:
        yield db
        # commit-ul e responsabilitatea serviciului (o tranzacție per operație)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


__all__ = [
    "Base",
    "metadata",
    "DataSourceRegistry",
    "build_engine",
    "get_db",
]
