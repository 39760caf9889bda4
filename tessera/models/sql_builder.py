"""
Tessera SQL Builder — parameterized INSERT / UPDATE / DELETE generation.

All values are bound as ``?`` parameters; identifiers are double-quoted.
WHERE fragments are supplied already compiled (usually by the query
compiler), together with their parameters.

Usage:
    sql, params = InsertBuilder("users").from_dict({"name": "Ann"}).build()
    # 'INSERT INTO "users" ("name") VALUES (?)', ["Ann"]

    sql, params = (
        UpdateBuilder("users")
        .set_dict({"name": "Ann2"})
        .where('"id" = ?', 1)
        .build()
    )
    # 'UPDATE "users" SET "name" = ? WHERE "id" = ?', ["Ann2", 1]
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple

__all__ = [
    "quote_identifier",
    "InsertBuilder",
    "UpdateBuilder",
    "DeleteBuilder",
]


def quote_identifier(name: str) -> str:
    """
    Quote a column or table reference.

    ``table.col`` is quoted per part; ``*`` parts, already-quoted names
    and raw expressions (anything with a parenthesis or a space) are
    returned unchanged.
    """
    if name == "*" or name.startswith('"') or "(" in name or " " in name:
        return name
    return ".".join(part if part == "*" else f'"{part}"' for part in name.split("."))


def _where_sql(wheres: List[str]) -> str:
    if len(wheres) == 1:
        return " WHERE " + wheres[0]
    return " WHERE " + " AND ".join(f"({w})" for w in wheres)


class InsertBuilder:
    """INSERT query builder."""

    def __init__(self, table: str):
        self._table = table
        self._columns: List[str] = []
        self._values: List[Any] = []

    def columns(self, *cols: str) -> InsertBuilder:
        self._columns = list(cols)
        return self

    def values(self, *vals: Any) -> InsertBuilder:
        self._values = list(vals)
        return self

    def from_dict(self, data: Dict[str, Any]) -> InsertBuilder:
        """Set columns and values from a dict."""
        self._columns = list(data.keys())
        self._values = list(data.values())
        return self

    def build(self) -> Tuple[str, List[Any]]:
        if not self._columns:
            return f"INSERT INTO {quote_identifier(self._table)} DEFAULT VALUES", []
        col_names = ", ".join(quote_identifier(c) for c in self._columns)
        placeholders = ", ".join("?" for _ in self._columns)
        sql = f"INSERT INTO {quote_identifier(self._table)} ({col_names}) VALUES ({placeholders})"
        return sql, list(self._values)

    def build_many(self, rows: Sequence[Dict[str, Any]]) -> Tuple[str, List[Any]]:
        """
        Build a single multi-row INSERT.

        Columns are the union of all row keys in first-seen order; a row
        lacking a column binds NULL for it.
        """
        if not rows:
            raise ValueError("No rows to insert")
        cols: List[str] = []
        for row in rows:
            for column in row:
                if column not in cols:
                    cols.append(column)
        col_names = ", ".join(quote_identifier(c) for c in cols)
        group = "(" + ", ".join("?" for _ in cols) + ")"
        sql = (
            f"INSERT INTO {quote_identifier(self._table)} ({col_names}) "
            f"VALUES {', '.join(group for _ in rows)}"
        )
        params = [row.get(c) for row in rows for c in cols]
        return sql, params


class UpdateBuilder:
    """UPDATE query builder."""

    def __init__(self, table: str):
        self._table = table
        self._sets: Dict[str, Any] = {}
        self._expressions: Dict[str, Tuple[str, List[Any]]] = {}
        self._wheres: List[str] = []
        self._params: List[Any] = []

    def set(self, **kwargs: Any) -> UpdateBuilder:
        self._sets.update(kwargs)
        return self

    def set_dict(self, data: Dict[str, Any]) -> UpdateBuilder:
        self._sets.update(data)
        return self

    def set_expression(self, column: str, expression: str, *args: Any) -> UpdateBuilder:
        """Assign a raw SQL expression, e.g. ``'"votes" + ?'``."""
        self._expressions[column] = (expression, list(args))
        return self

    def where(self, clause: str, *args: Any) -> UpdateBuilder:
        self._wheres.append(clause)
        self._params.extend(args)
        return self

    def build(self) -> Tuple[str, List[Any]]:
        if not self._sets and not self._expressions:
            raise ValueError("No columns to update")
        set_parts: List[str] = []
        params: List[Any] = []
        for column, (expression, args) in self._expressions.items():
            set_parts.append(f"{quote_identifier(column)} = {expression}")
            params.extend(args)
        for column, value in self._sets.items():
            set_parts.append(f"{quote_identifier(column)} = ?")
            params.append(value)
        sql = f"UPDATE {quote_identifier(self._table)} SET {', '.join(set_parts)}"
        if self._wheres:
            sql += _where_sql(self._wheres)
            params.extend(self._params)
        return sql, params


class DeleteBuilder:
    """DELETE query builder."""

    def __init__(self, table: str):
        self._table = table
        self._wheres: List[str] = []
        self._params: List[Any] = []

    def where(self, clause: str, *args: Any) -> DeleteBuilder:
        self._wheres.append(clause)
        self._params.extend(args)
        return self

    def build(self) -> Tuple[str, List[Any]]:
        sql = f"DELETE FROM {quote_identifier(self._table)}"
        if self._wheres:
            sql += _where_sql(self._wheres)
        return sql, list(self._params)
