"""
Tessera DB Backends.

Only SQLite ships with the ORM; other backends plug in by implementing
``DatabaseAdapter``.
"""

from .base import DatabaseAdapter, QueryResult, ColumnInfo
from .sqlite import SQLiteAdapter

__all__ = [
    "DatabaseAdapter",
    "QueryResult",
    "ColumnInfo",
    "SQLiteAdapter",
]
