"""
Result — a value-or-fault return type.

Used by lookups that may legitimately miss, so callers can branch
without exception handling:

    result = User.try_find(7)
    if result.is_ok:
        user = result.value
    else:
        log(result.fault.to_dict())

    user = User.try_find(7).unwrap()       # raises the fault
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from ..faults.core import Fault

T = TypeVar("T")
U = TypeVar("U")

__all__ = ["Result"]


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    fault: Optional[Fault] = None

    @classmethod
    def ok(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def err(cls, fault: Fault) -> Result[Any]:
        return cls(fault=fault)

    @property
    def is_ok(self) -> bool:
        return self.fault is None

    @property
    def is_err(self) -> bool:
        return self.fault is not None

    def unwrap(self) -> T:
        if self.fault is not None:
            raise self.fault
        return self.value

    def unwrap_or(self, default: T) -> T:
        return default if self.fault is not None else self.value

    def map(self, fn: Callable[[T], U]) -> Result[U]:
        if self.fault is not None:
            return self  # type: ignore[return-value]
        return Result.ok(fn(self.value))

    def __bool__(self) -> bool:
        return self.is_ok
