# shop_api/core/settings.py
from __future__ import annotations

from functools import lru_cache
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Încarcă variabilele din .env (pe host). În Docker vin din env_file/environment.
load_dotenv()


class Settings(BaseSettings):
    # App
    APP_TITLE: str = "shop-db-api"
    APP_VERSION: str = "0.1.0"
    APP_ENV: str = Field("dev")
    LOG_LEVEL: str = "INFO"
    ROOT_PATH: Optional[str] = None
    DISABLE_DOCS: bool = False
    BUILD_SHA: str = ""

    # DB (primary + baze suplimentare, nume logic -> URL)
    DATABASE_URL: str = Field(
        "sqlite:///./app.db",
        description="postgresql+psycopg://appuser:<PASS>@db:5432/appdb",
    )
    PRIMARY_DB_NAME: str = "primary"
    EXTRA_DATABASES: Dict[str, str] = Field(default_factory=dict)
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_RECYCLE: int = 1800  # sec (30 min)
    DB_POOL_TIMEOUT: int = 30    # sec
    DB_POOL_LIFO: bool = True
    DB_SEARCH_PATH: str = ""     # ex. "app,public" (doar Postgres)
    DB_STATEMENT_TIMEOUT_MS: Optional[int] = None
    DB_APPLICATION_NAME: str = ""
    DB_CONNECT_RETRIES: int = 3
    SQLALCHEMY_CREATE_ALL: bool = False

    # SQL externalizat (<pachet>/<modul>/<operatie>.sql)
    SQL_QUERIES_PACKAGE: str = "shop_api.queries"

    # Paginare
    PAGE_SIZE_DEFAULT: int = 20
    PAGE_SIZE_MAX: int = 100

    # HTTP
    MAX_BODY_SIZE_BYTES: int = 0  # 0 = dezactivat
    CORS_ORIGINS: str = ""
    TRUSTED_HOSTS: str = ""

    # Alembic
    ALEMBIC_CONFIG: str = "alembic.ini"
    ALEMBIC_VERSION_TABLE: str = "alembic_version"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def _url_not_empty(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("DATABASE_URL este gol. Setează o valoare validă.")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return (v or "INFO").strip().upper()

    @field_validator("ROOT_PATH")
    @classmethod
    def _root_path(cls, v: Optional[str]) -> Optional[str]:
        v = (v or "").strip()
        return v or None

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def trusted_hosts(self) -> List[str]:
        return [h.strip() for h in self.TRUSTED_HOSTS.split(",") if h.strip()]


@lru_cache
def get_settings() -> Settings:
    """Setările sunt citite o singură dată per proces."""
    return Settings()
