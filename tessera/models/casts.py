"""
Attribute casts — read-side conversion of stored column values.

The stored ("raw") form of an attribute is what the database returned
or what the caller assigned; casts only shape what ``get_attribute``
hands back. Dirty diffing always works on raw values.

Supported casts:
    int | integer, float | double, bool | boolean, str | string,
    array | json (raw form is a JSON string), datetime, date
"""

from __future__ import annotations

import datetime
import json
from typing import Any, Callable, Dict

from ..faults.domains import CastFault

__all__ = [
    "CAST_ALIASES",
    "normalize_cast",
    "cast_value",
    "prepare_value",
    "current_timestamp",
    "TIMESTAMP_FORMAT",
]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

CAST_ALIASES: Dict[str, str] = {
    "int": "int",
    "integer": "int",
    "float": "float",
    "double": "float",
    "bool": "bool",
    "boolean": "bool",
    "str": "string",
    "string": "string",
    "array": "json",
    "json": "json",
    "datetime": "datetime",
    "date": "date",
}

_FALSY_STRINGS = frozenset({"", "0", "false", "no", "off"})


def current_timestamp() -> str:
    """Timestamp value written to created/updated/deleted columns."""
    return datetime.datetime.now().strftime(TIMESTAMP_FORMAT)


def normalize_cast(column: str, cast: str) -> str:
    """Map a declared cast name to its canonical kind."""
    kind = CAST_ALIASES.get(str(cast).lower())
    if kind is None:
        raise CastFault(column, str(cast), None, reason="unknown cast type")
    return kind


def _to_int(column: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError) as exc:
            raise CastFault(column, "int", value, reason=str(exc)) from exc


def _to_float(column: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise CastFault(column, "float", value, reason=str(exc)) from exc


def _to_bool(column: str, value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSY_STRINGS
    return bool(value)


def _to_string(column: str, value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _to_json(column: str, value: Any) -> Any:
    if isinstance(value, (bytes, str)):
        try:
            return json.loads(value)
        except ValueError as exc:
            raise CastFault(column, "json", value, reason=str(exc)) from exc
    return value


def _to_datetime(column: str, value: Any) -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.datetime.fromtimestamp(value)
    if isinstance(value, str):
        try:
            return datetime.datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise CastFault(column, "datetime", value, reason=str(exc)) from exc
    raise CastFault(column, "datetime", value, reason=f"unsupported type {type(value).__name__}")


def _to_date(column: str, value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    return _to_datetime(column, value).date()


_READERS: Dict[str, Callable[[str, Any], Any]] = {
    "int": _to_int,
    "float": _to_float,
    "bool": _to_bool,
    "string": _to_string,
    "json": _to_json,
    "datetime": _to_datetime,
    "date": _to_date,
}


def cast_value(column: str, kind: str, value: Any) -> Any:
    """Convert a raw value for reading. ``None`` always stays ``None``."""
    if value is None:
        return None
    return _READERS[kind](column, value)


def prepare_value(kind: str, value: Any) -> Any:
    """
    Convert an assigned value into its raw (storable) form.

    Only kinds whose raw form differs from the Python value need this:
    booleans become 0/1, JSON structures are encoded and date/time
    objects are formatted.
    """
    if value is None:
        return None
    if kind == "bool" and isinstance(value, bool):
        return int(value)
    if kind == "json" and not isinstance(value, (str, bytes)):
        return json.dumps(value)
    if kind == "datetime" and isinstance(value, datetime.datetime):
        return value.strftime(TIMESTAMP_FORMAT)
    if kind == "date" and isinstance(value, datetime.datetime):
        return value.date().isoformat()
    if kind in ("datetime", "date") and isinstance(value, datetime.date):
        return value.isoformat()
    return value
