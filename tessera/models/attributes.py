"""
Per-instance attribute storage with dirty tracking.

``AttributeStore`` keeps two maps: the current raw values and the
"original" snapshot taken at the last load or successful save. The
dirty set is every key whose current value differs from the snapshot
(or that the snapshot lacks). Comparison is type-strict, so ``1`` and
``"1"`` differ.

Accessors and mutators are declared on the entity either through
``Meta.accessors`` / ``Meta.mutators`` or with the decorators below:

    class User(Entity):
        @accessor("name")
        def display_name(self, raw):
            return raw.title() if raw else raw

        @mutator("email")
        def normalize_email(self, value):
            return value.strip().lower()
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, Optional

__all__ = ["AttributeStore", "TransformRegistry", "accessor", "mutator"]

_MISSING = object()


def _differs(current: Any, original: Any) -> bool:
    if type(current) is not type(original):
        return True
    return current != original


class AttributeStore:
    """Raw column values plus the snapshot used for dirty diffing."""

    __slots__ = ("_attributes", "_original")

    def __init__(self, attributes: Optional[Dict[str, Any]] = None):
        self._attributes: Dict[str, Any] = dict(attributes or {})
        self._original: Dict[str, Any] = {}

    def raw(self, column: str, default: Any = None) -> Any:
        return self._attributes.get(column, default)

    def has(self, column: str) -> bool:
        return column in self._attributes

    def set_raw(self, column: str, value: Any) -> None:
        self._attributes[column] = value

    def pop(self, column: str) -> Any:
        """Remove ``column`` from both the values and the snapshot."""
        self._original.pop(column, None)
        return self._attributes.pop(column, None)

    def all(self) -> Dict[str, Any]:
        return dict(self._attributes)

    def load(self, row: Dict[str, Any]) -> None:
        """Replace all values with a storage row and snapshot it."""
        self._attributes = dict(row)
        self.sync_original()

    def clear(self) -> None:
        self._attributes.clear()
        self._original.clear()

    # ── Snapshot ─────────────────────────────────────────────────────

    def original(self, column: Optional[str] = None, default: Any = None) -> Any:
        if column is None:
            return dict(self._original)
        return self._original.get(column, default)

    def sync_original(self) -> None:
        self._original = dict(self._attributes)

    def merge_original(self, values: Dict[str, Any]) -> None:
        self._original.update(values)

    def dirty(self) -> Dict[str, Any]:
        """Columns whose current raw value differs from the snapshot."""
        return {
            column: value
            for column, value in self._attributes.items()
            if _differs(value, self._original.get(column, _MISSING))
        }

    def is_dirty(self, column: Optional[str] = None) -> bool:
        dirty = self.dirty()
        if column is None:
            return bool(dirty)
        return column in dirty

    def __iter__(self) -> Iterator[str]:
        return iter(self._attributes)

    def __len__(self) -> int:
        return len(self._attributes)

    def __repr__(self) -> str:
        return f"AttributeStore({self._attributes!r})"


# ── Accessors / mutators ────────────────────────────────────────────────────

def accessor(column: str) -> Callable:
    """Mark a method as the read override for ``column``: ``fn(self, raw)``."""
    def decorator(fn: Callable) -> Callable:
        fn._tessera_accessor = column
        return fn
    return decorator


def mutator(column: str) -> Callable:
    """Mark a method as the write override for ``column``: ``fn(self, value) -> raw``."""
    def decorator(fn: Callable) -> Callable:
        fn._tessera_mutator = column
        return fn
    return decorator


class TransformRegistry:
    """Column -> accessor / mutator callables for one entity type."""

    __slots__ = ("accessors", "mutators")

    def __init__(
        self,
        accessors: Optional[Dict[str, Callable]] = None,
        mutators: Optional[Dict[str, Callable]] = None,
    ):
        self.accessors: Dict[str, Callable] = dict(accessors or {})
        self.mutators: Dict[str, Callable] = dict(mutators or {})

    @classmethod
    def collect(cls, namespace: Dict[str, Any], meta_accessors, meta_mutators, parent=None) -> TransformRegistry:
        """Build a registry from the parent's, the Meta dicts and decorated methods."""
        registry = cls(
            parent.accessors if parent else None,
            parent.mutators if parent else None,
        )
        registry.accessors.update(meta_accessors or {})
        registry.mutators.update(meta_mutators or {})
        for value in namespace.values():
            column = getattr(value, "_tessera_accessor", None)
            if column:
                registry.accessors[column] = value
            column = getattr(value, "_tessera_mutator", None)
            if column:
                registry.mutators[column] = value
        return registry

    def accessor_for(self, column: str) -> Optional[Callable]:
        return self.accessors.get(column)

    def mutator_for(self, column: str) -> Optional[Callable]:
        return self.mutators.get(column)
