"""
Collection — ordered container returned by query terminals.

A collection is list-backed (results of ``get()``, ``all()`` ...) or
dict-backed (``group_by``, ``key_by``, ``pluck`` with a key column).
Filtering and ordering keep the backing kind: a list stays a list and
is re-indexed, a dict keeps its keys.

Key arguments accept a column name, a dotted path into nested
entities/dicts (``"author.name"``), or a callable.

Usage:
    users = User.query().get()
    names = users.pluck("name")
    adults = users.filter(lambda u: u.get_attribute("age") >= 18)
    by_role = users.group_by("role")
    users.sort_by_desc("created_at").take(5).to_json()
"""

from __future__ import annotations

import datetime
import decimal
import json
from functools import reduce as _reduce
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

__all__ = ["Collection", "SeenSet", "data_get", "to_plain", "json_default"]

KeySpec = Union[str, Callable[[Any], Any], None]

_MISSING = object()


def data_get(target: Any, path: Optional[str], default: Any = None) -> Any:
    """Resolve a dotted ``path`` through dicts, entities and plain objects."""
    if path is None:
        return target
    current = target
    for segment in str(path).split("."):
        if current is None:
            return default
        if isinstance(current, dict):
            current = current.get(segment, _MISSING)
        elif hasattr(current, "get_attribute") and hasattr(current, "relation_loaded"):
            if current.relation_loaded(segment):
                current = current.get_relation(segment)
            elif segment in type(current)._relation_fields:
                current = getattr(current, segment)
            else:
                current = current.get_attribute(segment)
        elif isinstance(current, (list, tuple, Collection)) and segment.isdigit():
            items = list(current)
            index = int(segment)
            current = items[index] if index < len(items) else _MISSING
        else:
            current = getattr(current, segment, _MISSING)
        if current is _MISSING:
            return default
    return current


def _resolver(key: KeySpec) -> Callable[[Any], Any]:
    if key is None:
        return lambda item: item
    if callable(key):
        return key
    return lambda item: data_get(item, key)


def _sort_key(value: Any) -> Tuple[bool, Any]:
    # None sorts first.
    return (value is not None, value)


def to_plain(value: Any) -> Any:
    """Recursively convert entities and collections to dicts/lists."""
    if hasattr(value, "to_array"):
        return value.to_array()
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


def json_default(value: Any) -> Any:
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, decimal.Decimal):
        return float(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, set):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class SeenSet:
    """
    Membership tracker for arbitrary values.

    Hashable values go into a ``set``; unhashable ones (dicts, lists)
    fall back to a list scanned by equality.
    """

    __slots__ = ("_hashed", "_unhashable")

    def __init__(self, values: Iterable[Any] = ()):
        self._hashed: set = set()
        self._unhashable: List[Any] = []
        for value in values:
            self.add(value)

    def add(self, value: Any) -> None:
        try:
            self._hashed.add(value)
        except TypeError:
            self._unhashable.append(value)

    def __contains__(self, value: Any) -> bool:
        try:
            return value in self._hashed
        except TypeError:
            return value in self._unhashable


class Collection:
    """Ordered, optionally keyed container with functional helpers."""

    __slots__ = ("_items",)

    def __init__(self, items: Union[Iterable[Any], Dict[Any, Any], None] = None):
        if items is None:
            self._items: Union[List[Any], Dict[Any, Any]] = []
        elif isinstance(items, Collection):
            self._items = items._items.copy()
        elif isinstance(items, dict):
            self._items = dict(items)
        else:
            self._items = list(items)

    @classmethod
    def make(cls, items: Union[Iterable[Any], Dict[Any, Any], None] = None) -> Collection:
        return cls(items)

    # ── Internal ─────────────────────────────────────────────────────

    @property
    def is_keyed(self) -> bool:
        return isinstance(self._items, dict)

    def _pairs(self) -> Iterator[Tuple[Any, Any]]:
        if isinstance(self._items, dict):
            return iter(self._items.items())
        return enumerate(self._items)

    def _rebuild(self, pairs: Iterable[Tuple[Any, Any]]) -> Collection:
        if isinstance(self._items, dict):
            return Collection(dict(pairs))
        return Collection([value for _, value in pairs])

    # ── Access ───────────────────────────────────────────────────────

    def all(self) -> List[Any]:
        """Values as a plain list."""
        return list(self._items.values()) if isinstance(self._items, dict) else list(self._items)

    def items(self) -> List[Tuple[Any, Any]]:
        return list(self._pairs())

    def keys(self) -> Collection:
        return Collection([key for key, _ in self._pairs()])

    def values(self) -> Collection:
        return Collection(self.all())

    def get(self, key: Any, default: Any = None) -> Any:
        try:
            return self._items[key]
        except (KeyError, IndexError, TypeError):
            return default

    def has(self, key: Any) -> bool:
        if isinstance(self._items, dict):
            return key in self._items
        return isinstance(key, int) and -len(self._items) <= key < len(self._items)

    def first(self, callback: Optional[Callable[[Any], bool]] = None, default: Any = None) -> Any:
        for _, value in self._pairs():
            if callback is None or callback(value):
                return value
        return default

    def last(self, callback: Optional[Callable[[Any], bool]] = None, default: Any = None) -> Any:
        for value in reversed(self.all()):
            if callback is None or callback(value):
                return value
        return default

    def count(self) -> int:
        return len(self._items)

    def is_empty(self) -> bool:
        return not self._items

    def is_not_empty(self) -> bool:
        return bool(self._items)

    def contains(self, value: Any) -> bool:
        """True if any item equals ``value`` or, for a callable, satisfies it."""
        if callable(value):
            return any(value(item) for item in self.all())
        return value in self.all()

    def search(self, value: Any, strict: bool = False) -> Any:
        """
        Key of the first matching item, or ``None``.

        ``value`` may be a callable test; ``strict`` also compares types.
        """
        for key, item in self._pairs():
            if callable(value):
                if value(item):
                    return key
            elif item == value and (not strict or type(item) is type(value)):
                return key
        return None

    # ── Mutation ─────────────────────────────────────────────────────

    def push(self, *values: Any) -> Collection:
        if isinstance(self._items, dict):
            raise TypeError("push() requires a list-backed collection; use put()")
        self._items.extend(values)
        return self

    def put(self, key: Any, value: Any) -> Collection:
        self._items[key] = value
        return self

    def pop(self) -> Any:
        if not self._items:
            return None
        if isinstance(self._items, dict):
            return self._items.pop(next(reversed(self._items)))
        return self._items.pop()

    def shift(self) -> Any:
        if not self._items:
            return None
        if isinstance(self._items, dict):
            return self._items.pop(next(iter(self._items)))
        return self._items.pop(0)

    def forget(self, *keys: Any) -> Collection:
        """Remove items by key (or index) in place."""
        if isinstance(self._items, dict):
            for key in keys:
                self._items.pop(key, None)
            return self
        size = len(self._items)
        indexes = {k % size for k in keys if isinstance(k, int) and -size <= k < size}
        for index in sorted(indexes, reverse=True):
            del self._items[index]
        return self

    # ── Transformations ──────────────────────────────────────────────

    def map(self, callback: Callable[[Any], Any]) -> Collection:
        return self._rebuild((key, callback(value)) for key, value in self._pairs())

    def transform(self, callback: Callable[[Any], Any]) -> Collection:
        """In-place ``map``."""
        self._items = self.map(callback)._items
        return self

    def map_with_keys(self, callback: Callable[[Any], Tuple[Any, Any]]) -> Collection:
        """``callback`` returns a ``(key, value)`` pair per item."""
        return Collection(dict(callback(value) for value in self.all()))

    def filter(self, callback: Optional[Callable[[Any], bool]] = None) -> Collection:
        test = callback or bool
        return self._rebuild((key, value) for key, value in self._pairs() if test(value))

    def reject(self, callback: Callable[[Any], bool]) -> Collection:
        return self._rebuild((key, value) for key, value in self._pairs() if not callback(value))

    def reduce(self, callback: Callable[[Any, Any], Any], initial: Any = None) -> Any:
        return _reduce(callback, self.all(), initial)

    def each(self, callback: Callable[[Any], Any]) -> Collection:
        """Call ``callback`` per item; stop when it returns exactly False."""
        for value in self.all():
            if callback(value) is False:
                break
        return self

    def every(self, callback: Callable[[Any], bool]) -> bool:
        return all(callback(value) for value in self.all())

    def pluck(self, value: str, key: Optional[str] = None) -> Collection:
        if key is None:
            return Collection([data_get(item, value) for item in self.all()])
        return Collection({data_get(item, key): data_get(item, value) for item in self.all()})

    def key_by(self, key: KeySpec) -> Collection:
        resolve = _resolver(key)
        return Collection({resolve(item): item for item in self.all()})

    def group_by(self, key: KeySpec) -> Collection:
        resolve = _resolver(key)
        groups: Dict[Any, List[Any]] = {}
        for item in self.all():
            groups.setdefault(resolve(item), []).append(item)
        return Collection({group: Collection(members) for group, members in groups.items()})

    def sort(self, key: Optional[Callable[[Any], Any]] = None, reverse: bool = False) -> Collection:
        """Stable sort by ``key`` (natural order when omitted)."""
        resolve = key or (lambda item: item)
        pairs = sorted(self._pairs(), key=lambda pair: _sort_key(resolve(pair[1])), reverse=reverse)
        return self._rebuild(pairs)

    def sort_by(self, key: KeySpec, descending: bool = False) -> Collection:
        return self.sort(_resolver(key), reverse=descending)

    def sort_by_desc(self, key: KeySpec) -> Collection:
        return self.sort_by(key, descending=True)

    def reverse(self) -> Collection:
        return self._rebuild(reversed(list(self._pairs())))

    def unique(self, key: KeySpec = None) -> Collection:
        resolve = _resolver(key)
        seen = SeenSet()
        pairs = []
        for pair_key, value in self._pairs():
            marker = resolve(value)
            if marker in seen:
                continue
            seen.add(marker)
            pairs.append((pair_key, value))
        return self._rebuild(pairs)

    def diff(self, other: Iterable[Any]) -> Collection:
        excluded = SeenSet(other.all() if isinstance(other, Collection) else other)
        return self._rebuild((key, value) for key, value in self._pairs() if value not in excluded)

    def merge(self, other: Union[Iterable[Any], Dict[Any, Any]]) -> Collection:
        if isinstance(self._items, dict):
            merged = dict(self._items)
            merged.update(other._items if isinstance(other, Collection) else dict(other))
            return Collection(merged)
        extra = other.all() if isinstance(other, Collection) else list(other)
        return Collection(self._items + extra)

    def only(self, *keys: Any) -> Collection:
        return self._rebuild((key, value) for key, value in self._pairs() if key in keys)

    def except_(self, *keys: Any) -> Collection:
        return self._rebuild((key, value) for key, value in self._pairs() if key not in keys)

    def collapse(self) -> Collection:
        flat: List[Any] = []
        for value in self.all():
            if isinstance(value, Collection):
                flat.extend(value.all())
            elif isinstance(value, (list, tuple)):
                flat.extend(value)
            else:
                flat.append(value)
        return Collection(flat)

    def flatten(self, depth: float = float("inf")) -> Collection:
        """Flatten nested lists, tuples, dicts and collections up to ``depth`` levels."""
        flat: List[Any] = []
        for value in self.all():
            if isinstance(value, (Collection, list, tuple, dict)):
                inner = Collection(value)
                flat.extend(inner.all() if depth <= 1 else inner.flatten(depth - 1).all())
            else:
                flat.append(value)
        return Collection(flat)

    def chunk(self, size: int) -> Collection:
        if size < 1:
            return Collection()
        values = self.all()
        return Collection([Collection(values[i:i + size]) for i in range(0, len(values), size)])

    def take(self, limit: int) -> Collection:
        pairs = list(self._pairs())
        return self._rebuild(pairs[:limit] if limit >= 0 else pairs[limit:])

    def slice(self, offset: int, length: Optional[int] = None) -> Collection:
        pairs = list(self._pairs())[offset:]
        if length is not None:
            pairs = pairs[:length]
        return self._rebuild(pairs)

    # ── Filtering by key ─────────────────────────────────────────────

    def where(self, key: str, operator: Any, value: Any = _MISSING) -> Collection:
        """``where("age", 30)`` or ``where("age", ">=", 30)``."""
        if value is _MISSING:
            operator, value = "=", operator
        tests: Dict[str, Callable[[Any, Any], bool]] = {
            "=": lambda a, b: a == b,
            "==": lambda a, b: a == b,
            "!=": lambda a, b: a != b,
            "<>": lambda a, b: a != b,
            ">": lambda a, b: a is not None and a > b,
            ">=": lambda a, b: a is not None and a >= b,
            "<": lambda a, b: a is not None and a < b,
            "<=": lambda a, b: a is not None and a <= b,
        }
        if operator not in tests:
            raise ValueError(f"Unsupported operator {operator!r}")
        test = tests[operator]
        return self.filter(lambda item: test(data_get(item, key), value))

    def where_strict(self, key: str, value: Any) -> Collection:
        """``where(key, value)`` that also requires matching types (``1`` is not ``True``)."""
        return self.filter(lambda item: type(data_get(item, key)) is type(value) and data_get(item, key) == value)

    def where_in(self, key: str, values: Iterable[Any]) -> Collection:
        allowed = SeenSet(values)
        return self.filter(lambda item: data_get(item, key) in allowed)

    def where_not_in(self, key: str, values: Iterable[Any]) -> Collection:
        excluded = SeenSet(values)
        return self.filter(lambda item: data_get(item, key) not in excluded)

    # ── Aggregates ───────────────────────────────────────────────────

    def _numbers(self, key: KeySpec) -> List[Any]:
        resolve = _resolver(key)
        return [v for v in (resolve(item) for item in self.all()) if v is not None]

    def sum(self, key: KeySpec = None) -> Any:
        return sum(self._numbers(key))

    def avg(self, key: KeySpec = None) -> Optional[float]:
        numbers = self._numbers(key)
        return sum(numbers) / len(numbers) if numbers else None

    def min(self, key: KeySpec = None) -> Any:
        numbers = self._numbers(key)
        return min(numbers) if numbers else None

    def max(self, key: KeySpec = None) -> Any:
        numbers = self._numbers(key)
        return max(numbers) if numbers else None

    def implode(self, glue: str, key: Optional[str] = None) -> str:
        values = self.pluck(key).all() if key else self.all()
        return glue.join(str(v) for v in values)

    # ── Serialization ────────────────────────────────────────────────

    def to_array(self) -> Union[List[Any], Dict[Any, Any]]:
        if isinstance(self._items, dict):
            return {key: to_plain(value) for key, value in self._items.items()}
        return [to_plain(value) for value in self._items]

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_array(), default=json_default, **kwargs)

    # ── Protocols ────────────────────────────────────────────────────

    def __iter__(self) -> Iterator[Any]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __getitem__(self, key: Any) -> Any:
        if isinstance(key, slice) and not isinstance(self._items, dict):
            return Collection(self._items[key])
        return self._items[key]

    def __setitem__(self, key: Any, value: Any) -> None:
        self._items[key] = value

    def __contains__(self, value: Any) -> bool:
        return value in self.all()

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Collection):
            return self._items == other._items
        return self._items == other

    def __repr__(self) -> str:
        return f"Collection({self._items!r})"
