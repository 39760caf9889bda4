"""
Page — one slice of a paginated query.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .collection import Collection

__all__ = ["Page"]


@dataclass
class Page:
    items: Collection = field(default_factory=Collection)
    total: int = 0
    per_page: int = 15
    current_page: int = 1

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page)) if self.per_page > 0 else 1

    @property
    def from_item(self) -> Optional[int]:
        """1-based index of the first item on this page, None when empty."""
        if not self.items:
            return None
        return (self.current_page - 1) * self.per_page + 1

    @property
    def to_item(self) -> Optional[int]:
        if not self.items:
            return None
        return (self.current_page - 1) * self.per_page + len(self.items)

    @property
    def has_more_pages(self) -> bool:
        return self.current_page < self.last_page

    @property
    def next_page(self) -> Optional[int]:
        return self.current_page + 1 if self.has_more_pages else None

    @property
    def prev_page(self) -> Optional[int]:
        return self.current_page - 1 if self.current_page > 1 else None

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.items.to_array(),
            "total": self.total,
            "per_page": self.per_page,
            "current_page": self.current_page,
            "last_page": self.last_page,
            "from": self.from_item,
            "to": self.to_item,
            "has_more_pages": self.has_more_pages,
            "next_page": self.next_page,
            "prev_page": self.prev_page,
        }
