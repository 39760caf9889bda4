"""
Mass-assignment guard.

A non-empty ``fillable`` allow-list wins; otherwise a non-empty
``guarded`` deny-list applies; otherwise every column may be filled.
Rejected keys are dropped silently (logged at DEBUG).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable

logger = logging.getLogger("tessera.models.guard")

__all__ = ["MassAssignmentGuard"]


class MassAssignmentGuard:
    __slots__ = ("fillable", "guarded")

    def __init__(self, fillable: Iterable[str] = (), guarded: Iterable[str] = ()):
        self.fillable = frozenset(fillable)
        self.guarded = frozenset(guarded)

    def is_fillable(self, column: str) -> bool:
        if self.fillable:
            return column in self.fillable
        if self.guarded:
            return column not in self.guarded
        return True

    def filter(self, attributes: Dict[str, Any], owner: str = "") -> Dict[str, Any]:
        """Keep only the keys that pass :meth:`is_fillable`, in input order."""
        allowed = {}
        for column, value in attributes.items():
            if self.is_fillable(column):
                allowed[column] = value
            else:
                logger.debug(f"{owner}: dropped non-fillable attribute '{column}'")
        return allowed

    def __repr__(self) -> str:
        return f"MassAssignmentGuard(fillable={sorted(self.fillable)}, guarded={sorted(self.guarded)})"
