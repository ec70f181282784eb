# shop_api/main.py
from __future__ import annotations

import logging
import re
import time
import uuid
from contextlib import asynccontextmanager
from typing import List, Optional, Sequence, Tuple, cast

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.openapi.utils import get_openapi
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.trustedhost import TrustedHostMiddleware
from starlette.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from tenacity import before_sleep_log, retry, stop_after_attempt, wait_exponential_jitter

from alembic.config import Config as AlembicConfig
from alembic.script import ScriptDirectory

from shop_api.core.logging import get_logger, setup_logging
from shop_api.core.settings import Settings, get_settings
from shop_api.core.sql_catalog import SqlCatalog
from shop_api.database import DataSourceRegistry, get_db
from shop_api.errors import BusinessRuleError, ConfigurationError, ConflictError, NotFoundError, ShopError
from shop_api.pagination import Paginator
from shop_api.routers.orders import router as orders_router
from shop_api.routers.products import router as products_router
from shop_api.routers.users import router as users_router

logger = get_logger()

tags_metadata = [
    {"name": "health", "description": "Liveness/Readiness checks"},
    {"name": "users", "description": "User CRUD & search"},
    {"name": "products", "description": "Product CRUD, search & stock adjustments"},
    {"name": "orders", "description": "Order lifecycle (create, status, cancel)"},
]

_ident_re = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Tipul erorii de domeniu -> cod HTTP
_ERROR_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (BusinessRuleError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


# --- Utilitare ---
def _safe_ident(name: str, fallback: str) -> str:
    if _ident_re.fullmatch(name or ""):
        return name
    logger.warning("Invalid SQL identifier from env: %r. Using fallback: %r", name, fallback)
    return fallback


def _get_req_id_from_headers(request: Request) -> str:
    # Prefer X-Request-ID, apoi X-Correlation-ID; dacă lipsesc, generează unul.
    return (
        request.headers.get("x-request-id")
        or request.headers.get("x-correlation-id")
        or uuid.uuid4().hex[:12]
    )


def _error(request: Request, code: int, detail, kind: str) -> JSONResponse:
    return JSONResponse(
        status_code=code,
        content={"detail": detail, "error": kind},
        headers={"X-Request-ID": _get_req_id_from_headers(request)},
    )


def _ping_database(registry: DataSourceRegistry, attempts: int) -> str:
    """SELECT 1 pe primary, cu retry exponențial (DB-ul poate porni după aplicație)."""

    @retry(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential_jitter(initial=0.5, max=5),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def _ping() -> str:
        with registry.primary.connect() as conn:
            conn.execute(text("SELECT 1"))
            return conn.dialect.name

    return _ping()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    version_table = _safe_ident(settings.ALEMBIC_VERSION_TABLE, "alembic_version")
    started_mono = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: registry DB, catalog SQL (fatal dacă lipsește), paginator
        registry = DataSourceRegistry.from_settings(settings)
        app.state.datasources = registry
        app.state.sql_catalog = SqlCatalog.load(settings.SQL_QUERIES_PACKAGE)
        app.state.paginator = Paginator(settings.PAGE_SIZE_DEFAULT, settings.PAGE_SIZE_MAX)

        if settings.SQLALCHEMY_CREATE_ALL:
            logger.warning("SQLALCHEMY_CREATE_ALL=1 → create_all() (doar dev/teste; în producție folosește Alembic)")
            registry.create_all()

        try:
            dialect = _ping_database(registry, settings.DB_CONNECT_RETRIES)
            logger.info("DB startup check OK (dialect=%s, datasources=%s)", dialect, registry.names())
        except Exception:
            # nu oprim aplicația; /health/db și /health/ready raportează 503
            logger.exception("DB startup check FAILED")

        # Ready to serve
        yield

        registry.dispose()
        logger.info("Datasources disposed")

    docs_enabled = not settings.DISABLE_DOCS
    app = FastAPI(
        title=settings.APP_TITLE,
        version=settings.APP_VERSION,
        openapi_tags=tags_metadata,
        lifespan=lifespan,
        root_path=settings.ROOT_PATH or "",
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.settings = settings

    # --- Middleware ---
    async def request_context_mw(request: Request, call_next):
        """
        - Generează/propagă X-Request-ID
        - Aplică headers de securitate
        - Limitează mărimea corpului când Content-Length e disponibil
        - Server-Timing / X-Process-Time
        """
        req_id = _get_req_id_from_headers(request)

        # Body-size guard (non-intruziv, pe Content-Length)
        max_body = settings.MAX_BODY_SIZE_BYTES
        if max_body > 0:
            cl = request.headers.get("content-length")
            if cl is not None and cl.isdigit() and int(cl) > max_body:
                return JSONResponse(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    content={"detail": "Payload too large", "error": "payload_too_large", "max_bytes": max_body},
                    headers={"X-Request-ID": req_id},
                )

        start = time.perf_counter()
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        # Security + perf headers
        response.headers.setdefault("X-Request-ID", req_id)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Cache-Control", "no-store")
        response.headers.setdefault("X-App-Version", settings.APP_VERSION)
        response.headers.setdefault("Server-Timing", f"app;dur={duration_ms:.1f}")
        response.headers.setdefault("X-Process-Time", f"{duration_ms:.1f}ms")
        return response

    app.middleware("http")(request_context_mw)
    app.add_middleware(GZipMiddleware, minimum_size=1024)

    # Trusted hosts (opțional): TRUSTED_HOSTS="localhost,127.0.0.1,.example.com"
    if settings.trusted_hosts:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=cast(Sequence[str], settings.trusted_hosts))

    # CORS din env: CORS_ORIGINS="http://localhost:3000,https://example.com"
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["X-Total-Count", "X-Request-ID", "Server-Timing", "X-Process-Time", "X-App-Version"],
        )

    # --- OpenAPI customization & caching ---
    def _custom_openapi():
        """Generează schema OpenAPI on-demand și o cache-uiește (+ ROOT_PATH ca server, build SHA)."""
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(title=settings.APP_TITLE, version=settings.APP_VERSION, routes=app.routes)
        rp = settings.ROOT_PATH or ""
        if rp and rp != "/":
            schema["servers"] = [{"url": rp}]
        if settings.BUILD_SHA:
            schema.setdefault("info", {})["x-build-sha"] = settings.BUILD_SHA
        app.openapi_schema = schema
        return app.openapi_schema

    app.openapi = _custom_openapi  # type: ignore[assignment]

    # --- Exception handlers (ops-friendly) ---
    @app.exception_handler(ShopError)
    async def _shop_error_handler(request: Request, exc: ShopError):
        for exc_type, code in _ERROR_STATUS:
            if isinstance(exc, exc_type):
                break
        else:
            code = status.HTTP_400_BAD_REQUEST
        if code >= 500:
            logger.error("Configuration error on %s %s: %s", request.method, request.url.path, exc.message)
            return _error(request, code, "Internal configuration error", exc.kind)
        if code == status.HTTP_404_NOT_FOUND:
            logger.debug("%s %s -> 404: %s", request.method, request.url.path, exc.message)
        else:
            logger.warning("%s %s -> %s: %s", request.method, request.url.path, code, exc.message)
        return _error(request, code, exc.message, exc.kind)

    @app.exception_handler(IntegrityError)
    async def _integrity_handler(request: Request, exc: IntegrityError):
        orig = getattr(exc, "orig", None)
        pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        mapping = {
            "23505": (status.HTTP_409_CONFLICT, "Unique constraint violated."),
            "23503": (status.HTTP_409_CONFLICT, "Foreign key violation."),
            "23514": (status.HTTP_422_UNPROCESSABLE_ENTITY, "Check constraint violated."),
            "23502": (status.HTTP_422_UNPROCESSABLE_ENTITY, "Not-null constraint violated."),
        }
        code, msg = mapping.get(pgcode, (status.HTTP_409_CONFLICT, "Integrity error."))
        logger.warning("IntegrityError on %s %s (pgcode=%s): %s", request.method, request.url.path, pgcode, orig)
        return _error(request, code, msg, "conflict")

    @app.exception_handler(OperationalError)
    async def _operational_handler(request: Request, exc: OperationalError):
        logger.error("Database unavailable on %s %s: %s", request.method, request.url.path, exc.orig)
        return _error(request, status.HTTP_503_SERVICE_UNAVAILABLE, "Database unavailable", "unavailable")

    @app.exception_handler(RequestValidationError)
    async def _validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": jsonable_encoder(exc.errors()), "error": "validation"},
            headers={"X-Request-ID": _get_req_id_from_headers(request)},
        )

    # Prinde 404/405 Starlette și răspunde JSON unitar
    @app.exception_handler(StarletteHTTPException)
    async def _starlette_http_exc_handler(request: Request, exc: StarletteHTTPException):
        headers = dict(exc.headers or {})
        headers.setdefault("X-Request-ID", _get_req_id_from_headers(request))
        detail = exc.detail
        if exc.status_code == status.HTTP_404_NOT_FOUND and detail == "Not Found":
            detail = {"message": "Not Found", "path": str(request.url.path)}
        elif exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            detail = {"message": "Method Not Allowed", "path": str(request.url.path)}
        return JSONResponse(status_code=exc.status_code, content={"detail": detail, "error": "http"}, headers=headers)

    @app.exception_handler(Exception)
    async def _unhandled_exc_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return _error(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error", "internal")

    # --- Helpers Alembic/health ---
    def _get_db_alembic_version(db: Session) -> Tuple[Optional[str], bool]:
        try:
            version = db.execute(text(f'SELECT version_num FROM "{version_table}"')).scalar_one_or_none()
            return version, True
        except Exception:
            db.rollback()
            return None, False

    def _get_pkg_alembic_heads() -> List[str]:
        cfg = AlembicConfig(settings.ALEMBIC_CONFIG)
        script = ScriptDirectory.from_config(cfg)
        return list(script.get_heads())

    # --- Routes: health ---
    @app.get("/", tags=["health"])
    def root():
        payload = {"name": settings.APP_TITLE, "version": settings.APP_VERSION}
        if settings.BUILD_SHA:
            payload["build_sha"] = settings.BUILD_SHA
        return payload

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "ok", "uptime_seconds": round(time.monotonic() - started_mono, 3)}

    @app.get("/health/db", tags=["health"])
    def health_db(request: Request, db: Session = Depends(get_db)):
        try:
            db.execute(text("SELECT 1"))
        except Exception:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="DB not ready")
        registry: DataSourceRegistry = request.app.state.datasources
        return {
            "status": "ok",
            "db": "up",
            "dialect": db.get_bind().dialect.name,
            "datasources": registry.names(),
            "sql_queries": len(request.app.state.sql_catalog),
        }

    @app.get("/health/migrations", tags=["health"])
    def health_migrations(db: Session = Depends(get_db)):
        version, present = _get_db_alembic_version(db)
        payload = {"alembic_version": version, "present": present}
        try:
            heads = _get_pkg_alembic_heads()
            payload["pkg_heads"] = heads
            payload["in_sync"] = bool(version and heads and version == heads[0])
        except Exception as e:
            payload["pkg_heads_error"] = str(e)
        return payload

    @app.get("/health/ready", tags=["health"])
    def health_ready(db: Session = Depends(get_db)):
        """
        Consideră aplicația ready dacă:
          - DB răspunde
          - schema există (migrații aplicate sau create_all în dev)
        """
        try:
            db.execute(text("SELECT 1"))
            db.execute(text("SELECT COUNT(*) FROM products WHERE 1 = 0"))
        except Exception:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Not ready")
        return {"ready": True}

    # --- Routers ---
    app.include_router(users_router)
    app.include_router(products_router)
    app.include_router(orders_router)

    return app


app = create_app()
