"""
Tessera DB Backend — SQLite adapter.

This is the default backend. It wraps the ``sqlite3`` driver and
implements the full DatabaseAdapter interface including introspection.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional, Sequence

from .base import DatabaseAdapter, ColumnInfo, QueryResult

logger = logging.getLogger("tessera.db.backends.sqlite")

__all__ = ["SQLiteAdapter"]


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite adapter.

    Features:
    - Autocommit outside explicit transactions
    - Foreign key enforcement
    - Column introspection
    """

    def __init__(self):
        self._connection: Optional[sqlite3.Connection] = None

    def connect(self, url: str, **options) -> None:
        if self._connection is not None:
            return
        db_path = self._parse_url(url)
        timeout = float(options.get("timeout", 5.0))
        # isolation_level=None: the adapter issues BEGIN/COMMIT itself
        self._connection = sqlite3.connect(
            db_path,
            timeout=timeout,
            isolation_level=None,
            check_same_thread=bool(options.get("check_same_thread", True)),
        )
        self._connection.row_factory = sqlite3.Row
        self._connection.execute("PRAGMA foreign_keys=ON")
        logger.info(f"SQLite connected: {db_path}")

    def disconnect(self) -> None:
        if self._connection is None:
            return
        self._connection.close()
        self._connection = None
        logger.info("SQLite disconnected")

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult:
        cursor = self._require_connection().execute(sql, list(params or []))
        rows: List[Dict[str, Any]] = []
        if cursor.description:
            rows = [dict(row) for row in cursor.fetchall()]
        return QueryResult(
            rows=rows,
            affected_row_count=max(cursor.rowcount, 0),
            last_insert_id=cursor.lastrowid or None,
        )

    def execute_many(self, sql: str, params_list: Sequence[Sequence[Any]]) -> int:
        cursor = self._require_connection().executemany(sql, [list(p) for p in params_list])
        return max(cursor.rowcount, 0)

    # ── Transactions ─────────────────────────────────────────────────

    def begin(self) -> None:
        self._require_connection().execute("BEGIN")

    def commit(self) -> None:
        self._require_connection().execute("COMMIT")

    def rollback(self) -> None:
        connection = self._require_connection()
        if connection.in_transaction:
            connection.execute("ROLLBACK")

    # ── Introspection ────────────────────────────────────────────────

    def table_exists(self, table_name: str) -> bool:
        result = self.query(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            [table_name],
        )
        return bool(result.rows)

    def get_columns(self, table_name: str) -> List[ColumnInfo]:
        rows = self.query(f'PRAGMA table_info("{table_name}")').rows
        return [
            ColumnInfo(
                name=row["name"],
                data_type=row["type"],
                nullable=not row["notnull"],
                default=row["dflt_value"],
                primary_key=bool(row["pk"]),
            )
            for row in rows
        ]

    @property
    def in_transaction(self) -> bool:
        return self._connection is not None and self._connection.in_transaction

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise RuntimeError("Not connected")
        return self._connection

    @property
    def dialect(self) -> str:
        return "sqlite"

    @staticmethod
    def _parse_url(url: str) -> str:
        """Extract file path from sqlite URL."""
        for prefix in ("sqlite:///", "sqlite://"):
            if url.startswith(prefix):
                path = url[len(prefix):]
                return path or ":memory:"
        return url.replace("sqlite:", "").lstrip("/") or ":memory:"
