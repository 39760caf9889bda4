"""
Tessera DB Backend — Base Adapter Interface.

All database backends must implement this interface. The ``TesseraDatabase``
engine delegates to the adapter selected by the connection URL.

Every statement travels as SQL with ``?`` placeholders plus an ordered
parameter list, and comes back as a ``QueryResult``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence


__all__ = [
    "DatabaseAdapter",
    "QueryResult",
    "ColumnInfo",
]


@dataclass
class QueryResult:
    """Outcome of one statement: materialised rows plus write bookkeeping."""

    rows: List[Dict[str, Any]] = field(default_factory=list)
    affected_row_count: int = 0
    last_insert_id: Optional[int] = None

    @property
    def first_row(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None


@dataclass
class ColumnInfo:
    """Introspection result for a single column."""

    name: str
    data_type: str
    nullable: bool = True
    default: Optional[str] = None
    primary_key: bool = False


class DatabaseAdapter(ABC):
    """
    Abstract database adapter interface.

    Adapters are synchronous: every call returns only after the
    round-trip to the backend completes.
    """

    @abstractmethod
    def connect(self, url: str, **options) -> None:
        """Open a connection to the database."""
        ...

    @abstractmethod
    def disconnect(self) -> None:
        """Close the database connection."""
        ...

    @abstractmethod
    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult:
        """Execute one statement and return its rows and write bookkeeping."""
        ...

    @abstractmethod
    def execute_many(self, sql: str, params_list: Sequence[Sequence[Any]]) -> int:
        """Execute a statement once per parameter set. Returns affected rows."""
        ...

    # ── Transaction management ───────────────────────────────────────

    @abstractmethod
    def begin(self) -> None:
        """Start a transaction."""
        ...

    @abstractmethod
    def commit(self) -> None:
        """Commit the current transaction."""
        ...

    @abstractmethod
    def rollback(self) -> None:
        """Rollback the current transaction."""
        ...

    # ── Introspection ────────────────────────────────────────────────

    @abstractmethod
    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        ...

    @abstractmethod
    def get_columns(self, table_name: str) -> List[ColumnInfo]:
        """Get column info for a table."""
        ...

    @property
    def in_transaction(self) -> bool:
        return False

    @property
    def is_connected(self) -> bool:
        """Check if the adapter is connected."""
        return False

    @property
    @abstractmethod
    def dialect(self) -> str:
        """Return the SQL dialect name."""
        ...