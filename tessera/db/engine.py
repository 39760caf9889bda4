"""
Tessera Database Engine — the query-execution port consumed by the ORM.

Provides:
- TesseraDatabase: connection manager delegating to a backend adapter
- Placeholder/parameter count checking before dispatch
- Structured faults (DatabaseConnectionFault, QueryFault) instead of
  bare driver exceptions
- Transactions with savepoint support
- Module-level accessors for a process-wide default database
"""

from __future__ import annotations

import logging
import re
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..faults.domains import DatabaseConnectionFault, QueryFault
from .backends.base import DatabaseAdapter, ColumnInfo, QueryResult

logger = logging.getLogger("tessera.db")

# Sanitize savepoint names to prevent SQL injection
_SP_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _sanitize_savepoint(name: str) -> str:
    """Validate savepoint names — only alphanumeric + underscore allowed."""
    if not _SP_NAME_RE.match(name):
        raise QueryFault(
            model="<transaction>",
            operation="savepoint",
            reason=f"Invalid savepoint name: {name!r}. Use alphanumeric + underscore only.",
        )
    return name


def count_placeholders(sql: str) -> int:
    """Count ``?`` placeholders outside quoted literals and identifiers."""
    count = 0
    quote: Optional[str] = None
    for ch in sql:
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"', "`"):
            quote = ch
        elif ch == "?":
            count += 1
    return count


def _create_adapter(driver: str) -> DatabaseAdapter:
    """Factory — instantiate the correct backend adapter."""
    if driver == "sqlite":
        from .backends.sqlite import SQLiteAdapter
        return SQLiteAdapter()
    raise DatabaseConnectionFault(
        url=f"<{driver}>",
        reason=f"No adapter registered for driver: {driver}",
    )


class TesseraDatabase:
    """
    Synchronous database engine for Tessera.

    Delegates all operations to the backend adapter chosen from the URL.
    All statements use ``?`` placeholders; the parameter list must match
    the placeholder count or the call fails before reaching the backend.

    Usage:
        db = TesseraDatabase("sqlite:///:memory:")
        db.connect()
        result = db.query("SELECT * FROM users WHERE active = ?", [True])
        for row in result.rows:
            ...
        db.disconnect()
    """

    __slots__ = (
        "_url",
        "_driver",
        "_adapter",
        "_connected",
        "_options",
        "_depth",
        "_echo",
        "_connect_retries",
        "_connect_retry_delay",
    )

    def __init__(
        self,
        url: str = "sqlite:///:memory:",
        *,
        adapter: Optional[DatabaseAdapter] = None,
        **options: Any,
    ):
        """
        Initialize database engine.

        Args:
            url: Database URL, e.g. ``sqlite:///path/to/db.sqlite3`` or
                 ``sqlite:///:memory:``.
            adapter: Optional pre-built adapter (overrides URL detection).
            **options: Driver-specific options passed to the backend adapter.
                echo (bool): Log every statement at INFO instead of DEBUG.
                connect_retries (int): Number of connection attempts (default 3).
                connect_retry_delay (float): Seconds between attempts (default 0.5).
        """
        self._url = url
        self._driver = self._detect_driver(url)
        self._adapter: DatabaseAdapter = adapter or _create_adapter(self._driver)
        self._connected = False
        self._depth = 0
        self._echo = bool(options.pop("echo", False))
        self._connect_retries = int(options.pop("connect_retries", 3))
        self._connect_retry_delay = float(options.pop("connect_retry_delay", 0.5))
        self._options = options

    @staticmethod
    def _detect_driver(url: str) -> str:
        """Detect database driver from URL scheme."""
        if url.startswith("sqlite"):
            return "sqlite"
        raise DatabaseConnectionFault(
            url=url,
            reason=f"Unsupported database URL scheme: {url}",
        )

    # ── Connection management ────────────────────────────────────────

    def connect(self) -> None:
        """Open database connection with retry logic."""
        if self._connected:
            return

        last_exc: Optional[Exception] = None
        for attempt in range(1, self._connect_retries + 1):
            try:
                self._adapter.connect(self._url, **self._options)
                self._connected = True
                logger.info(f"Database connected ({self._driver}), attempt {attempt}")
                return
            except DatabaseConnectionFault:
                raise
            except Exception as exc:
                last_exc = exc
                if attempt < self._connect_retries:
                    logger.warning(
                        f"Connection attempt {attempt} failed: {exc}, "
                        f"retrying in {self._connect_retry_delay}s..."
                    )
                    time.sleep(self._connect_retry_delay)

        raise DatabaseConnectionFault(
            url=self._url,
            reason=f"Failed after {self._connect_retries} attempts: {last_exc}",
        )

    def disconnect(self) -> None:
        """Close database connection."""
        if not self._connected:
            return
        try:
            self._adapter.disconnect()
            logger.info("Database disconnected")
        except Exception as exc:
            raise DatabaseConnectionFault(
                url=self._url,
                reason=f"Disconnect failed: {exc}",
            ) from exc
        finally:
            self._connected = False
            self._depth = 0

    def ensure_connected(self) -> None:
        """Ensure a live connection exists, reconnecting if needed."""
        if not self._connected:
            self.connect()
        elif not self._adapter.is_connected:
            self._connected = False
            self.connect()

    # ── Transactions ─────────────────────────────────────────────────

    def begin(self) -> None:
        """Start a transaction (or a savepoint when one is already open)."""
        self.ensure_connected()
        if self._depth == 0:
            self._transaction_call("begin", "BEGIN", self._adapter.begin)
        else:
            self._savepoint(f"tessera_sp_{self._depth}")
        self._depth += 1

    def commit(self) -> None:
        """
        Commit the innermost transaction level.

        A failed outermost COMMIT rolls the connection back before the
        fault is raised, so the engine and the backend agree that no
        transaction is open. A failed savepoint release leaves the level
        open for the caller to roll back.
        """
        if self._depth == 0:
            raise QueryFault(model="<transaction>", operation="commit", reason="No active transaction")
        if self._depth > 1:
            self._release_savepoint(f"tessera_sp_{self._depth - 1}")
            self._depth -= 1
            return
        try:
            self._transaction_call("commit", "COMMIT", self._adapter.commit)
        except QueryFault:
            self._discard_failed_commit()
            raise
        self._depth = 0

    def rollback(self) -> None:
        """Roll back the innermost transaction level."""
        if self._depth == 0:
            raise QueryFault(model="<transaction>", operation="rollback", reason="No active transaction")
        self._depth -= 1
        if self._depth == 0:
            self._transaction_call("rollback", "ROLLBACK", self._adapter.rollback)
        else:
            self._rollback_to_savepoint(f"tessera_sp_{self._depth}")
        logger.warning(f"Transaction rolled back (depth {self._depth})")

    def _discard_failed_commit(self) -> None:
        self._depth = 0
        try:
            self._adapter.rollback()
        except Exception as exc:
            logger.error(f"Rollback after failed commit also failed: {exc}")
        else:
            logger.warning("Commit failed; transaction rolled back")

    def _transaction_call(self, operation: str, sql: str, call) -> None:
        try:
            call()
        except (DatabaseConnectionFault, QueryFault):
            raise
        except Exception as exc:
            raise QueryFault(
                model="<transaction>",
                operation=operation,
                reason=str(exc),
                metadata={"sql": sql},
            ) from exc

    @contextmanager
    def transaction(self) -> Iterator["TesseraDatabase"]:
        """
        Context manager for transactions.

        Commits on normal exit; rolls back and re-raises on any exception.
        Nested use maps onto savepoints.

        Usage:
            with db.transaction():
                db.query("INSERT INTO ...")
                db.query("UPDATE ...")
        """
        self.begin()
        level = self._depth
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        try:
            self.commit()
        except QueryFault:
            if self._depth >= level:
                self.rollback()
            raise

    def _savepoint(self, name: str) -> None:
        self._savepoint_statement("savepoint", f'SAVEPOINT "{_sanitize_savepoint(name)}"')

    def _release_savepoint(self, name: str) -> None:
        self._savepoint_statement("release", f'RELEASE SAVEPOINT "{_sanitize_savepoint(name)}"')

    def _rollback_to_savepoint(self, name: str) -> None:
        name = _sanitize_savepoint(name)
        self._savepoint_statement("rollback", f'ROLLBACK TO SAVEPOINT "{name}"')
        self._savepoint_statement("rollback", f'RELEASE SAVEPOINT "{name}"')

    def _savepoint_statement(self, operation: str, sql: str) -> None:
        self._transaction_call(operation, sql, lambda: self._adapter.query(sql))

    # ── Query execution ──────────────────────────────────────────────

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult:
        """
        Execute one statement.

        Args:
            sql: SQL with ``?`` placeholders
            params: Parameter values, in placeholder order

        Returns:
            QueryResult with rows, affected_row_count and last_insert_id

        Raises:
            QueryFault: When the statement fails or the parameter count
                does not match the placeholder count
        """
        self.ensure_connected()
        params = list(params or [])

        expected = count_placeholders(sql)
        if expected != len(params):
            raise QueryFault(
                model="<raw>",
                operation="query",
                reason=f"Statement has {expected} placeholder(s) but {len(params)} parameter(s) were given",
                metadata={"sql": sql, "params": params},
            )

        if self._echo:
            logger.info(f"SQL: {sql} {params}")
        else:
            logger.debug(f"SQL: {sql} {params}")

        try:
            return self._adapter.query(sql, params)
        except (DatabaseConnectionFault, QueryFault):
            raise
        except Exception as exc:
            raise QueryFault(
                model="<raw>",
                operation="query",
                reason=str(exc),
                metadata={"sql": sql, "params": params},
            ) from exc

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult:
        """Alias of ``query`` for write statements."""
        return self.query(sql, params)

    def execute_many(self, sql: str, params_list: Sequence[Sequence[Any]]) -> int:
        """Execute a SQL statement with multiple parameter sets."""
        self.ensure_connected()
        logger.debug(f"SQL (many x{len(params_list)}): {sql}")
        try:
            return self._adapter.execute_many(sql, params_list)
        except (DatabaseConnectionFault, QueryFault):
            raise
        except Exception as exc:
            raise QueryFault(
                model="<raw>",
                operation="execute_many",
                reason=str(exc),
                metadata={"sql": sql},
            ) from exc

    def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Execute query and return all rows as dicts."""
        return self.query(sql, params).rows

    def fetch_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return the first row as dict, or None."""
        return self.query(sql, params).first_row

    def fetch_val(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Execute query and return the first column of the first row."""
        row = self.fetch_one(sql, params)
        if row is None:
            return None
        return next(iter(row.values()), None)

    # ── Introspection ────────────────────────────────────────────────

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists in the database."""
        self.ensure_connected()
        return self._adapter.table_exists(table_name)

    def get_columns(self, table_name: str) -> List[ColumnInfo]:
        """Get column info for a table."""
        self.ensure_connected()
        return self._adapter.get_columns(table_name)

    # ── Properties ───────────────────────────────────────────────────

    @property
    def url(self) -> str:
        return self._url

    @property
    def driver(self) -> str:
        return self._driver

    @property
    def dialect(self) -> str:
        return self._adapter.dialect

    @property
    def adapter(self) -> DatabaseAdapter:
        return self._adapter

    @property
    def is_connected(self) -> bool:
        return self._connected and self._adapter.is_connected

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @property
    def transaction_depth(self) -> int:
        """Number of open transaction levels (0 outside a transaction)."""
        return self._depth

    def __repr__(self) -> str:
        state = "connected" if self._connected else "disconnected"
        return f"<TesseraDatabase {self._driver} {state}>"


# ── Module-level accessors ──────────────────────────────────────────────────

_default_database: Optional[TesseraDatabase] = None


def get_database() -> TesseraDatabase:
    """
    Get the default database.

    Raises:
        DatabaseConnectionFault: If no database is configured.
    """
    if _default_database is None:
        raise DatabaseConnectionFault(
            url="<none>",
            reason="No database configured. Call configure_database() first.",
        )
    return _default_database


def configure_database(url: str = "sqlite:///:memory:", **options: Any) -> TesseraDatabase:
    """Configure, connect and return the default database."""
    global _default_database
    db = TesseraDatabase(url, **options)
    db.connect()
    _default_database = db
    return db


def set_database(db: Optional[TesseraDatabase]) -> None:
    """Set an externally-created database as the default (None clears it)."""
    global _default_database
    _default_database = db
