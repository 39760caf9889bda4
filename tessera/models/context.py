"""
Tessera ORM Context — the explicit handle every entity/query operation runs on.

Holds the database port and a per-table schema cache. The host
application owns its lifecycle; a process-wide default may be installed
for convenience, but every operation also accepts ``context=``.

Usage:
    ctx = OrmContext.from_url("sqlite:///app.db")
    user = User.find(1, context=ctx)

    set_default_context(ctx)
    user = User.find(1)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from ..config import ConfigLoader, DatabaseConfig
from ..db.backends.base import QueryResult
from ..db.engine import TesseraDatabase
from ..faults.domains import DatabaseConnectionFault

logger = logging.getLogger("tessera.models.context")

__all__ = [
    "OrmContext",
    "get_default_context",
    "set_default_context",
    "resolve_context",
]


class OrmContext:
    """
    Database handle plus cached schema metadata.

    The handle is shared, non-reentrant state: one context serves one
    call-stack at a time.
    """

    __slots__ = ("db", "_columns")

    def __init__(self, db: TesseraDatabase):
        self.db = db
        self._columns: Dict[str, List[str]] = {}

    @classmethod
    def from_url(cls, url: str, **options: Any) -> OrmContext:
        """Build and connect a context for ``url``."""
        db = TesseraDatabase(url, **options)
        db.connect()
        return cls(db)

    @classmethod
    def from_config(cls, config: Union[DatabaseConfig, ConfigLoader, None] = None) -> OrmContext:
        """Build and connect a context from a ``DatabaseConfig`` (or a loader)."""
        if config is None:
            config = ConfigLoader.load()
        if isinstance(config, ConfigLoader):
            config = config.database()
        config.validate()
        return cls.from_url(config.url, **config.engine_options())

    # ── Delegation to the port ───────────────────────────────────────

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult:
        return self.db.query(sql, params)

    @contextmanager
    def transaction(self) -> Iterator[OrmContext]:
        with self.db.transaction():
            yield self

    # ── Schema cache ─────────────────────────────────────────────────

    def columns(self, table: str) -> List[str]:
        """Column names of ``table``, introspected once and cached."""
        if table not in self._columns:
            self._columns[table] = [c.name for c in self.db.get_columns(table)]
            logger.debug(f"Cached {len(self._columns[table])} column(s) for '{table}'")
        return list(self._columns[table])

    def clear_schema_cache(self, table: Optional[str] = None) -> None:
        if table is None:
            self._columns.clear()
        else:
            self._columns.pop(table, None)

    def close(self) -> None:
        self.db.disconnect()
        self._columns.clear()

    def __repr__(self) -> str:
        return f"<OrmContext {self.db!r}>"


# ── Default context ─────────────────────────────────────────────────────────

_default_context: Optional[OrmContext] = None


def get_default_context() -> OrmContext:
    """
    Return the process-wide default context.

    Raises:
        DatabaseConnectionFault: If no default context was installed.
    """
    if _default_context is None:
        raise DatabaseConnectionFault(
            url="<none>",
            reason="No ORM context configured. Pass context= or call set_default_context().",
        )
    return _default_context


def set_default_context(context: Optional[OrmContext]) -> None:
    """Install (or, with None, remove) the process-wide default context."""
    global _default_context
    _default_context = context


def resolve_context(*candidates: Optional[OrmContext]) -> OrmContext:
    """First non-None candidate, else the default context."""
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return get_default_context()
