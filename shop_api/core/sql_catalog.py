# shop_api/core/sql_catalog.py
from __future__ import annotations

import re
from importlib import resources
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Tuple

from shop_api.core.logging import get_logger
from shop_api.errors import SqlCatalogError

logger = get_logger("sql")

_LINE_COMMENT_RE = re.compile(r"--[^\n]*")
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_WS_RE = re.compile(r"\s+")
_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

Key = Tuple[str, str]


def normalize_sql(raw: str) -> str:
    """Elimină comentariile, colapsează whitespace și `;` final."""
    sql = _BLOCK_COMMENT_RE.sub(" ", raw)
    sql = _LINE_COMMENT_RE.sub(" ", sql)
    sql = _WS_RE.sub(" ", sql).strip()
    return sql.rstrip(";").rstrip()


class SqlCatalog:
    """
    Fragmente SQL numite, indexate după (modul, operație).

    Fișierele sunt organizate ca `<pachet>/<modul>/<operatie>.sql`
    (ex. `shop_api/queries/product/find_by_sku.sql`) și se încarcă o singură
    dată, la pornire. Instanța e imutabilă după construcție și se injectează
    în repository-uri (nu există cache global).
    """

    def __init__(self, queries: Mapping[Key, str], source: str = "<memory>"):
        self._queries: Mapping[Key, str] = MappingProxyType(dict(queries))
        self.source = source

    @classmethod
    def load(cls, package: str = "shop_api.queries") -> "SqlCatalog":
        try:
            root = resources.files(package)
        except (ModuleNotFoundError, TypeError) as e:
            raise SqlCatalogError(f"SQL package not importable: {package!r}") from e

        queries: Dict[Key, str] = {}
        for module_dir in root.iterdir():
            if not module_dir.is_dir() or not _NAME_RE.fullmatch(module_dir.name):
                continue
            for entry in module_dir.iterdir():
                if not entry.is_file() or not entry.name.endswith(".sql"):
                    continue
                operation = entry.name[: -len(".sql")]
                sql = normalize_sql(entry.read_text(encoding="utf-8"))
                if not sql:
                    raise SqlCatalogError(f"Empty SQL file: {module_dir.name}/{entry.name}")
                queries[(module_dir.name, operation)] = sql
                logger.debug("Preloaded SQL: %s/%s", module_dir.name, operation)

        logger.info("Preloaded %d SQL files from %s", len(queries), package)
        return cls(queries, source=package)

    def get(self, module: str, operation: str) -> str:
        try:
            return self._queries[(module, operation)]
        except KeyError:
            logger.error("SQL query missing: %s/%s (source=%s)", module, operation, self.source)
            raise SqlCatalogError(
                f"Failed to load SQL for module: {module}, operation: {operation}"
            ) from None

    def exists(self, module: str, operation: str) -> bool:
        return (module, operation) in self._queries

    def __len__(self) -> int:
        return len(self._queries)

    def __iter__(self) -> Iterator[Key]:
        return iter(sorted(self._queries))
