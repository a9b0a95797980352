"""
leoconnect.services.pagination — ``{items, total, hasMore}`` envelope
======================================================================
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from leoconnect.constants import MAX_PAGE_LIMIT

T = TypeVar("T")


@dataclass(slots=True)
class Page(Generic[T]):
    """One window of a larger ordered result set."""

    items: list[T] = field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total

    def to_dict(self, serialize: Callable[[T], Any] | None = None) -> dict:
        items = [serialize(i) for i in self.items] if serialize else list(self.items)
        return {"items": items, "total": self.total, "hasMore": self.has_more}


def clamp_window(limit: int | None, offset: int | None, default_limit: int) -> tuple[int, int]:
    """Normalise caller-supplied paging values."""
    lim = default_limit if not limit or limit < 1 else min(limit, MAX_PAGE_LIMIT)
    off = 0 if not offset or offset < 0 else offset
    return lim, off
