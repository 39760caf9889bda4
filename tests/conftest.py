"""
Shared test fixtures and helpers for the Tessera test suite.
"""

from typing import Any, List, Optional, Sequence, Tuple

import pytest

from tessera.db.backends.base import QueryResult
from tessera.db.backends.sqlite import SQLiteAdapter
from tessera.db.engine import TesseraDatabase
from tessera.models import OrmContext, set_default_context


FROZEN_NOW = "2024-01-02 03:04:05"

SCHEMA = [
    """
    CREATE TABLE users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT,
        email TEXT,
        age INTEGER,
        password TEXT,
        settings TEXT,
        is_admin INTEGER DEFAULT 0,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE posts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER,
        title TEXT,
        body TEXT,
        views INTEGER DEFAULT 0,
        published_at TEXT,
        created_at TEXT,
        updated_at TEXT,
        deleted_at TEXT
    )
    """,
    """
    CREATE TABLE comments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        post_id INTEGER,
        user_id INTEGER,
        body TEXT,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE tags (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT
    )
    """,
    """
    CREATE TABLE post_tag (
        post_id INTEGER,
        tag_id INTEGER
    )
    """,
    """
    CREATE TABLE profiles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER,
        bio TEXT
    )
    """,
]


# ============================================================================
# Recording adapter
# ============================================================================


class RecordingAdapter(SQLiteAdapter):
    """SQLite adapter that keeps every statement it executes."""

    def __init__(self):
        super().__init__()
        self.statements: List[Tuple[str, List[Any]]] = []

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult:
        self.statements.append((sql, list(params or [])))
        return super().query(sql, params)

    @property
    def sql(self) -> List[str]:
        return [sql for sql, _ in self.statements]

    @property
    def last(self) -> Tuple[str, List[Any]]:
        return self.statements[-1]

    def reset(self) -> None:
        self.statements.clear()


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def adapter():
    return RecordingAdapter()


@pytest.fixture
def ctx(adapter):
    """
    In-memory SQLite context with the test schema, installed as the
    default context for the duration of the test.
    """
    db = TesseraDatabase("sqlite:///:memory:", adapter=adapter)
    db.connect()
    context = OrmContext(db)
    for statement in SCHEMA:
        context.query(statement)
    adapter.reset()
    set_default_context(context)
    yield context
    set_default_context(None)
    context.close()


@pytest.fixture
def sql_log(ctx, adapter):
    """Statements executed during the test (schema creation excluded)."""
    return adapter


@pytest.fixture
def frozen_now(monkeypatch):
    """Pin the automatic timestamp value."""
    import tessera.models.base as base_module
    import tessera.models.query as query_module

    monkeypatch.setattr(base_module, "current_timestamp", lambda: FROZEN_NOW)
    monkeypatch.setattr(query_module, "current_timestamp", lambda: FROZEN_NOW)
    return FROZEN_NOW
