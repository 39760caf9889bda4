"""
Tessera Database — the query-execution port consumed by the ORM.

Provides:
- TesseraDatabase: connection manager with transaction support
- SQLite adapter (default); pluggable ``DatabaseAdapter`` interface
- Module-level default database accessors
- Structured faults (DatabaseConnectionFault, QueryFault)
"""

from .engine import (
    TesseraDatabase,
    count_placeholders,
    get_database,
    configure_database,
    set_database,
)

from .backends import (
    DatabaseAdapter,
    QueryResult,
    ColumnInfo,
    SQLiteAdapter,
)

from ..faults.domains import (
    DatabaseConnectionFault,
    QueryFault,
)

__all__ = [
    "TesseraDatabase",
    "count_placeholders",
    "DatabaseConnectionFault",
    "QueryFault",
    "get_database",
    "configure_database",
    "set_database",
    # Backends
    "DatabaseAdapter",
    "QueryResult",
    "ColumnInfo",
    "SQLiteAdapter",
]
