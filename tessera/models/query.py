"""
Tessera Query Builder — chainable, immutable, sync-terminal query object.

Every chain method returns a NEW ``QueryBuilder`` (copy-on-branch), so a
base query can be branched freely:

    base = User.query().where("active", True)
    admins = base.where("role", "admin").get()
    total = base.count()

Compilation order is fixed:
    SELECT .. FROM .. [JOIN ..] [WHERE ..] [GROUP BY ..] [HAVING ..]
    [ORDER BY ..] [LIMIT n] [OFFSET n]

Parameters are appended in the same pass that emits their placeholders,
so the parameter list always lines up with the SQL text.

Chain methods (return new builder):
    where / or_where              — comparison predicates (``=`` by default)
    where_in / where_not_in       — list membership (empty IN never matches,
                                    empty NOT IN is dropped)
    where_between / where_not_between
    where_null / where_not_null
    where_date / where_month / where_year / where_time
    select, join, left_join, right_join, group_by, having,
    order_by, limit, offset, with_, as_array, with_trashed, only_trashed

Terminal methods (execute SQL):
    get, first, count, exists, pluck, scalar, column, paginate, chunk,
    update, delete, restore, force_delete, increment, decrement
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type, Union, TYPE_CHECKING

from ..faults.domains import UsageFault
from .casts import current_timestamp
from .collection import Collection
from .context import OrmContext, resolve_context
from .pagination import Page
from .sql_builder import DeleteBuilder, UpdateBuilder, quote_identifier

if TYPE_CHECKING:
    from ..db.backends.base import QueryResult
    from .base import Entity

logger = logging.getLogger("tessera.models.query")

__all__ = ["QueryBuilder", "WhereNode", "WhereGroup", "JoinClause", "Visibility"]

_MISSING = object()

COMPARISON_OPERATORS = frozenset({"=", "!=", "<>", "<", ">", "<=", ">=", "LIKE", "NOT LIKE"})
LIST_OPERATORS = frozenset({"IN", "NOT IN"})
RANGE_OPERATORS = frozenset({"BETWEEN", "NOT BETWEEN"})
NULL_OPERATORS = frozenset({"IS NULL", "IS NOT NULL"})

# Date-part operators are stored as "<PART>_<comparison>", e.g. "MONTH_=".
DATE_PART_SQL = {
    "DATE": "DATE({})",
    "MONTH": "strftime('%m', {})",
    "YEAR": "strftime('%Y', {})",
    "TIME": "TIME({})",
}


class Visibility:
    """Soft-delete visibility modes of a query."""

    EXCLUDE_TRASHED = "exclude"
    WITH_TRASHED = "with"
    ONLY_TRASHED = "only"


@dataclass(frozen=True)
class WhereNode:
    connective: str
    column: str
    operator: str
    value: Any = None


@dataclass(frozen=True)
class WhereGroup:
    """Parenthesized AND-run of predicates joined to the chain by ``connective``."""

    connective: str
    nodes: Tuple[WhereNode, ...]


@dataclass(frozen=True)
class JoinClause:
    kind: str
    table: str
    first: str
    operator: str
    second: str


def _normalize_operator(operator: Any) -> str:
    op = " ".join(str(operator).upper().split())
    if op == "==":
        op = "="
    return op


def _date_part_param(part: str, value: Any) -> Any:
    if part == "MONTH":
        return f"{int(value):02d}"
    if part == "YEAR":
        return f"{int(value):04d}"
    if part == "DATE" and isinstance(value, (datetime.date, datetime.datetime)):
        return (value.date() if isinstance(value, datetime.datetime) else value).isoformat()
    if part == "TIME" and isinstance(value, (datetime.time, datetime.datetime)):
        return (value.time() if isinstance(value, datetime.datetime) else value).isoformat()
    return value


def _result_key(column: str) -> str:
    """Name under which a selected column appears in result rows."""
    lowered = column.lower()
    if " as " in lowered:
        return column[lowered.rindex(" as ") + 4:].strip().strip('"')
    return column.split(".")[-1].strip('"')


class QueryBuilder:
    """
    Query over one entity type.

    Builders are immutable: chain methods clone. Execution uses the
    builder's context if one was given, else the default context.
    """

    __slots__ = (
        "_entity_cls",
        "_context",
        "_columns",
        "_wheres",
        "_joins",
        "_group_by",
        "_havings",
        "_orders",
        "_limit_val",
        "_offset_val",
        "_eager",
        "_as_array",
        "_visibility",
    )

    def __init__(self, entity_cls: Type[Entity], context: Optional[OrmContext] = None):
        self._entity_cls = entity_cls
        self._context = context
        self._columns: List[str] = ["*"]
        self._wheres: List[Union[WhereNode, WhereGroup]] = []
        self._joins: List[JoinClause] = []
        self._group_by: List[str] = []
        self._havings: List[WhereNode] = []
        self._orders: List[Tuple[str, str]] = []
        self._limit_val: Optional[int] = None
        self._offset_val: Optional[int] = None
        self._eager: List[str] = []
        self._as_array = False
        self._visibility = Visibility.EXCLUDE_TRASHED

    @property
    def entity_cls(self) -> Type[Entity]:
        return self._entity_cls

    @property
    def table(self) -> str:
        return self._entity_cls._meta.table

    @property
    def context(self) -> OrmContext:
        return resolve_context(self._context)

    # ── Internal ─────────────────────────────────────────────────────

    def _clone(self) -> QueryBuilder:
        c = QueryBuilder(self._entity_cls, self._context)
        c._columns = self._columns.copy()
        c._wheres = self._wheres.copy()
        c._joins = self._joins.copy()
        c._group_by = self._group_by.copy()
        c._havings = self._havings.copy()
        c._orders = self._orders.copy()
        c._limit_val = self._limit_val
        c._offset_val = self._offset_val
        c._eager = self._eager.copy()
        c._as_array = self._as_array
        c._visibility = self._visibility
        return c

    def clone(self) -> QueryBuilder:
        """Independent copy of this builder."""
        return self._clone()

    def using(self, context: OrmContext) -> QueryBuilder:
        """Run this query on ``context``."""
        new = self._clone()
        new._context = context
        return new

    def _add_where(self, connective: str, column: str, operator: str, value: Any) -> QueryBuilder:
        new = self._clone()
        new._wheres.append(WhereNode(connective, column, operator, value))
        return new

    def _where_group(self, connective: str, method: str, columns: Dict[str, Any]) -> QueryBuilder:
        inner = self._clone()
        inner._wheres = []
        for key, val in columns.items():
            inner = inner._where("AND", method, key, val, _MISSING)
        new = self._clone()
        new._wheres.append(WhereGroup(connective, tuple(inner._wheres)))
        return new

    def _check_operator(self, operator: str, method: str) -> str:
        op = _normalize_operator(operator)
        if op in COMPARISON_OPERATORS or op in LIST_OPERATORS or op in RANGE_OPERATORS or op in NULL_OPERATORS:
            return op
        raise UsageFault(method, f"unsupported operator {operator!r}")

    @staticmethod
    def _check_pair(values: Any, method: str) -> Tuple[Any, Any]:
        pair = list(values) if isinstance(values, (list, tuple)) else None
        if pair is None or len(pair) != 2:
            raise UsageFault(method, f"expects exactly 2 values, got {values!r}")
        return pair[0], pair[1]

    # ── Predicates ───────────────────────────────────────────────────

    def _where(self, connective: str, method: str, column: Any, operator: Any, value: Any) -> QueryBuilder:
        if isinstance(column, dict):
            if connective == "OR" and len(column) > 1:
                return self._where_group(connective, method, column)
            new = self
            for key, val in column.items():
                new = new._where(connective, method, key, val, _MISSING)
            return new
        if value is _MISSING:
            operator, value = "=", operator
        op = self._check_operator(operator, method)
        if op in LIST_OPERATORS:
            return self._add_where(connective, column, op, list(value))
        if op in RANGE_OPERATORS:
            return self._add_where(connective, column, op, self._check_pair(value, method))
        if op in NULL_OPERATORS:
            return self._add_where(connective, column, op, None)
        return self._add_where(connective, column, op, value)

    def where(self, column: Any, operator: Any = _MISSING, value: Any = _MISSING) -> QueryBuilder:
        """
        Add an AND predicate.

        Usage:
            .where("age", 30)              # "age" = ?
            .where("age", ">=", 18)
            .where({"role": "admin", "active": 1})
        """
        return self._where("AND", "where", column, operator, value)

    def or_where(self, column: Any, operator: Any = _MISSING, value: Any = _MISSING) -> QueryBuilder:
        """
        Add an OR predicate.

        A dict with several entries becomes one parenthesized AND group:
        ``.or_where({"a": 1, "b": 2})`` gives ``OR ("a" = ? AND "b" = ?)``.
        """
        return self._where("OR", "or_where", column, operator, value)

    def where_in(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self._add_where("AND", column, "IN", list(values))

    def or_where_in(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self._add_where("OR", column, "IN", list(values))

    def where_not_in(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self._add_where("AND", column, "NOT IN", list(values))

    def or_where_not_in(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self._add_where("OR", column, "NOT IN", list(values))

    def where_between(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self._add_where("AND", column, "BETWEEN", self._check_pair(values, "where_between"))

    def or_where_between(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self._add_where("OR", column, "BETWEEN", self._check_pair(values, "or_where_between"))

    def where_not_between(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self._add_where("AND", column, "NOT BETWEEN", self._check_pair(values, "where_not_between"))

    def or_where_not_between(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self._add_where("OR", column, "NOT BETWEEN", self._check_pair(values, "or_where_not_between"))

    def where_null(self, column: str) -> QueryBuilder:
        return self._add_where("AND", column, "IS NULL", None)

    def or_where_null(self, column: str) -> QueryBuilder:
        return self._add_where("OR", column, "IS NULL", None)

    def where_not_null(self, column: str) -> QueryBuilder:
        return self._add_where("AND", column, "IS NOT NULL", None)

    def or_where_not_null(self, column: str) -> QueryBuilder:
        return self._add_where("OR", column, "IS NOT NULL", None)

    def _where_part(self, part: str, column: str, operator: Any, value: Any) -> QueryBuilder:
        if value is _MISSING:
            operator, value = "=", operator
        op = _normalize_operator(operator)
        if op not in COMPARISON_OPERATORS:
            raise UsageFault(f"where_{part.lower()}", f"unsupported operator {operator!r}")
        return self._add_where("AND", column, f"{part}_{op}", value)

    def where_date(self, column: str, operator: Any, value: Any = _MISSING) -> QueryBuilder:
        return self._where_part("DATE", column, operator, value)

    def where_month(self, column: str, operator: Any, value: Any = _MISSING) -> QueryBuilder:
        return self._where_part("MONTH", column, operator, value)

    def where_year(self, column: str, operator: Any, value: Any = _MISSING) -> QueryBuilder:
        return self._where_part("YEAR", column, operator, value)

    def where_time(self, column: str, operator: Any, value: Any = _MISSING) -> QueryBuilder:
        return self._where_part("TIME", column, operator, value)

    # ── Shape ────────────────────────────────────────────────────────

    def select(self, *columns: Any) -> QueryBuilder:
        """Replace the select list. Accepts names, ``table.*`` or raw expressions."""
        if len(columns) == 1 and isinstance(columns[0], (list, tuple)):
            columns = tuple(columns[0])
        new = self._clone()
        new._columns = list(columns) or ["*"]
        return new

    def _join(self, kind: str, table: str, first: str, operator: str, second: Optional[str]) -> QueryBuilder:
        if second is None:
            operator, second = "=", operator
        new = self._clone()
        new._joins.append(JoinClause(kind, table, first, _normalize_operator(operator), second))
        return new

    def join(self, table: str, first: str, operator: str, second: Optional[str] = None) -> QueryBuilder:
        """``join("posts", "users.id", "posts.user_id")`` or with an explicit operator."""
        return self._join("INNER", table, first, operator, second)

    def left_join(self, table: str, first: str, operator: str, second: Optional[str] = None) -> QueryBuilder:
        return self._join("LEFT", table, first, operator, second)

    def right_join(self, table: str, first: str, operator: str, second: Optional[str] = None) -> QueryBuilder:
        return self._join("RIGHT", table, first, operator, second)

    def group_by(self, *columns: str) -> QueryBuilder:
        new = self._clone()
        new._group_by.extend(columns)
        return new

    def having(self, column: str, operator: Any, value: Any = _MISSING) -> QueryBuilder:
        """HAVING predicate; all having predicates are joined with AND."""
        if value is _MISSING:
            operator, value = "=", operator
        op = self._check_operator(operator, "having")
        if op in RANGE_OPERATORS:
            value = self._check_pair(value, "having")
        elif op in LIST_OPERATORS:
            value = list(value)
        new = self._clone()
        new._havings.append(WhereNode("AND", column, op, value))
        return new

    def order_by(self, column: str, direction: str = "ASC") -> QueryBuilder:
        direction = str(direction).upper()
        if direction not in ("ASC", "DESC"):
            raise UsageFault("order_by", f"direction must be ASC or DESC, got {direction!r}")
        new = self._clone()
        new._orders.append((column, direction))
        return new

    def limit(self, n: int) -> QueryBuilder:
        new = self._clone()
        new._limit_val = int(n)
        return new

    def offset(self, n: int) -> QueryBuilder:
        new = self._clone()
        new._offset_val = int(n)
        return new

    def with_(self, *relations: str) -> QueryBuilder:
        """Eager-load relations (dotted names load nested relations)."""
        if len(relations) == 1 and isinstance(relations[0], (list, tuple)):
            relations = tuple(relations[0])
        new = self._clone()
        for name in relations:
            if name not in new._eager:
                new._eager.append(name)
        return new

    def as_array(self, enabled: bool = True) -> QueryBuilder:
        """Return plain dict rows instead of entities."""
        new = self._clone()
        new._as_array = enabled
        return new

    def with_trashed(self) -> QueryBuilder:
        new = self._clone()
        new._visibility = Visibility.WITH_TRASHED
        return new

    def only_trashed(self) -> QueryBuilder:
        new = self._clone()
        new._visibility = Visibility.ONLY_TRASHED
        return new

    # ── Compilation ──────────────────────────────────────────────────

    def _compile_predicate(self, node: WhereNode, params: List[Any]) -> Optional[str]:
        column = quote_identifier(node.column)
        op = node.operator

        if op in LIST_OPERATORS:
            values = list(node.value)
            if not values:
                if op == "NOT IN":
                    return None
                params.append(None)
                return f"{column} IN (?)"
            params.extend(values)
            return f"{column} {op} ({', '.join('?' for _ in values)})"

        if op in RANGE_OPERATORS:
            low, high = self._check_pair(node.value, op.lower())
            params.append(low)
            params.append(high)
            return f"{column} {op} ? AND ?"

        if op in NULL_OPERATORS:
            return f"{column} {op}"

        part, sep, comparison = op.partition("_")
        if sep and part in DATE_PART_SQL:
            params.append(_date_part_param(part, node.value))
            return f"{DATE_PART_SQL[part].format(column)} {comparison} ?"

        params.append(node.value)
        return f"{column} {op} ?"

    def _visibility_sql(self) -> Optional[str]:
        meta = self._entity_cls._meta
        if not meta.soft_delete or self._visibility == Visibility.WITH_TRASHED:
            return None
        column = quote_identifier(f"{meta.table}.{meta.deleted_at}")
        if self._visibility == Visibility.ONLY_TRASHED:
            return f"{column} IS NOT NULL"
        return f"{column} IS NULL"

    def _compile_nodes(self, nodes: Sequence[Union[WhereNode, WhereGroup]], params: List[Any]) -> Tuple[str, bool]:
        parts: List[str] = []
        has_or = False
        for node in nodes:
            if isinstance(node, WhereGroup):
                inner, _ = self._compile_nodes(node.nodes, params)
                fragment = (f"({inner})" if len(node.nodes) > 1 else inner) or None
            else:
                fragment = self._compile_predicate(node, params)
            if fragment is None:
                continue
            if parts:
                parts.append(f"{node.connective} {fragment}")
                has_or = has_or or node.connective == "OR"
            else:
                parts.append(fragment)
        return " ".join(parts), has_or

    def _compile_where(self, params: List[Any], *, visibility: bool = True) -> str:
        """
        WHERE body (without the keyword), or "" when nothing applies.

        The visibility predicate comes first; user predicates follow in
        insertion order. When both are present and the user predicates
        contain an OR, the user group is parenthesized so the visibility
        filter still applies to every row.
        """
        user_sql, has_or = self._compile_nodes(self._wheres, params)

        predicate = self._visibility_sql() if visibility else None
        if predicate is None:
            return user_sql
        if not user_sql:
            return predicate
        if has_or:
            user_sql = f"({user_sql})"
        return f"{predicate} AND {user_sql}"

    def _compile_select(self, columns_sql: Optional[str] = None, *, tail: bool = True) -> Tuple[str, List[Any]]:
        params: List[Any] = []
        if columns_sql is None:
            columns_sql = ", ".join(quote_identifier(c) for c in self._columns)
        sql = f"SELECT {columns_sql} FROM {quote_identifier(self.table)}"

        for join in self._joins:
            sql += (
                f" {join.kind} JOIN {quote_identifier(join.table)} ON "
                f"{quote_identifier(join.first)} {join.operator} {quote_identifier(join.second)}"
            )

        where = self._compile_where(params)
        if where:
            sql += " WHERE " + where

        if self._group_by:
            sql += " GROUP BY " + ", ".join(quote_identifier(g) for g in self._group_by)

        if self._havings:
            having_parts = []
            for node in self._havings:
                fragment = self._compile_predicate(node, params)
                if fragment is not None:
                    having_parts.append(fragment)
            if having_parts:
                sql += " HAVING " + " AND ".join(having_parts)

        if tail:
            if self._orders:
                sql += " ORDER BY " + ", ".join(f"{quote_identifier(c)} {d}" for c, d in self._orders)
            if self._limit_val is not None:
                sql += f" LIMIT {self._limit_val}"
            if self._offset_val is not None:
                if self._limit_val is None:
                    sql += " LIMIT -1"
                sql += f" OFFSET {self._offset_val}"

        return sql, params

    def to_sql(self) -> Tuple[str, List[Any]]:
        """Compiled SELECT and its parameters, without executing."""
        return self._compile_select()

    def _run(self, sql: str, params: List[Any]) -> QueryResult:
        return self.context.query(sql, params)

    # ── Terminal methods ─────────────────────────────────────────────

    def get(self) -> Collection:
        """Execute and return a Collection of entities (or dict rows)."""
        sql, params = self._compile_select()
        rows = self._run(sql, params).rows
        if self._as_array:
            if self._eager:
                logger.debug(f"{self._entity_cls.__name__}: eager loads ignored for array results")
            return Collection([dict(row) for row in rows])
        context = self._context
        entities = [self._entity_cls.hydrate(row, context=context) for row in rows]
        if self._eager and entities:
            from .relations import eager_load
            eager_load(self._entity_cls, entities, self._eager, context)
        return Collection(entities)

    def first(self) -> Any:
        """First matching entity (or row) or None."""
        return self.limit(1).get().first()

    def count(self) -> int:
        """Number of matching rows. Order, limit and offset are ignored."""
        base = self._clone()
        base._orders = []
        base._limit_val = None
        base._offset_val = None
        if base._group_by:
            inner, params = base._compile_select()
            sql = f'SELECT COUNT(*) AS "aggregate" FROM ({inner}) AS "grouped"'
        else:
            sql, params = base._compile_select('COUNT(*) AS "aggregate"')
        row = self._run(sql, params).first_row
        return int(row["aggregate"]) if row and row["aggregate"] is not None else 0

    def exists(self) -> bool:
        return self.count() > 0

    def pluck(self, column: str, key: Optional[str] = None) -> Any:
        """
        Values of one column: a list, or a dict keyed by ``key``.
        """
        columns = [column] if key is None else [column, key]
        rows = self.select(*columns).as_array()._raw_rows()
        value_name = _result_key(column)
        if key is None:
            return [row.get(value_name) for row in rows]
        key_name = _result_key(key)
        return {row.get(key_name): row.get(value_name) for row in rows}

    def _raw_rows(self) -> List[Dict[str, Any]]:
        sql, params = self._compile_select()
        return self._run(sql, params).rows

    def scalar(self) -> Any:
        """First column of the first row, or None."""
        rows = self.limit(1)._raw_rows()
        if not rows:
            return None
        return next(iter(rows[0].values()), None)

    def column(self) -> List[Any]:
        """First column of every row."""
        return [next(iter(row.values()), None) for row in self._raw_rows()]

    def paginate(self, per_page: int = 15, page: int = 1) -> Page:
        if per_page < 1:
            raise UsageFault("paginate", f"per_page must be positive, got {per_page}")
        total = self.count()
        last_page = max(1, -(-total // per_page))
        current = min(max(1, int(page)), last_page)
        items = self.limit(per_page).offset((current - 1) * per_page).get()
        return Page(items=items, total=total, per_page=per_page, current_page=current)

    def chunk(self, size: int, callback: Callable[[Collection], Any]) -> bool:
        """
        Feed the results to ``callback`` ``size`` rows at a time.

        Returns False if the callback stopped the iteration by returning
        False, True once every chunk was processed.
        """
        if size < 1:
            raise UsageFault("chunk", f"size must be positive, got {size}")
        base = self
        if not base._orders:
            meta = self._entity_cls._meta
            base = base.order_by(f"{meta.table}.{meta.primary_key}")
        page = 0
        while True:
            results = base.limit(size).offset(page * size).get()
            if not results:
                break
            if callback(results) is False:
                return False
            if len(results) < size:
                break
            page += 1
        return True

    # ── Write terminals ──────────────────────────────────────────────

    def _scoped_where(self, operation: str, *, require: bool) -> Tuple[str, List[Any]]:
        params: List[Any] = []
        where = self._compile_where(params, visibility=False)
        if require and not where:
            raise UsageFault(operation, "refusing to run without a WHERE predicate")
        return where, params

    def _perform_update(self, values: Dict[str, Any], operation: str, *, require: bool = True, expressions=None) -> int:
        meta = self._entity_cls._meta
        where, where_params = self._scoped_where(operation, require=require)
        builder = UpdateBuilder(meta.table)
        for column, (expression, args) in (expressions or {}).items():
            builder.set_expression(column, expression, *args)
        changes = dict(values)
        if meta.timestamps and meta.updated_at not in changes:
            changes[meta.updated_at] = current_timestamp()
        builder.set_dict(changes)
        if where:
            builder.where(where, *where_params)
        sql, params = builder.build()
        return self._run(sql, params).affected_row_count

    def update(self, values: Dict[str, Any]) -> int:
        """UPDATE every matching row; returns the affected row count."""
        if not values:
            raise UsageFault("update", "no values given")
        return self._perform_update(values, "update")

    def increment(self, column: str, amount: Any = 1, extra: Optional[Dict[str, Any]] = None) -> int:
        expression = f"{quote_identifier(column)} + ?"
        return self._perform_update(extra or {}, "increment", expressions={column: (expression, [amount])})

    def decrement(self, column: str, amount: Any = 1, extra: Optional[Dict[str, Any]] = None) -> int:
        expression = f"{quote_identifier(column)} - ?"
        return self._perform_update(extra or {}, "decrement", expressions={column: (expression, [amount])})

    def delete(self) -> int:
        """
        Delete matching rows.

        With soft deletes enabled this marks the rows instead and, unlike
        the other write terminals, is allowed without a predicate.
        """
        meta = self._entity_cls._meta
        if meta.soft_delete:
            return self._perform_update({meta.deleted_at: current_timestamp()}, "delete", require=False)
        return self.force_delete()

    def force_delete(self) -> int:
        """Physically delete matching rows, ignoring soft deletes."""
        where, params = self._scoped_where("force_delete" if self._entity_cls._meta.soft_delete else "delete", require=True)
        sql, params = DeleteBuilder(self.table).where(where, *params).build()
        return self._run(sql, params).affected_row_count

    def restore(self) -> int:
        """Clear the soft-delete marker on matching rows."""
        meta = self._entity_cls._meta
        if not meta.soft_delete:
            raise UsageFault("restore", f"{self._entity_cls.__name__} does not use soft deletes")
        return self._perform_update({meta.deleted_at: None}, "restore")

    # ── Dunder ───────────────────────────────────────────────────────

    def __iter__(self):
        return iter(self.get())

    def __repr__(self) -> str:
        sql, params = self._compile_select()
        return f"<QueryBuilder {self._entity_cls.__name__}: {sql} {params}>"
