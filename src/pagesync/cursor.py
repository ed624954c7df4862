"""Pagination cursors for offset and scroll-token list endpoints."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class PaginationStyle(str, Enum):
    """How a list endpoint paginates."""

    OFFSET = "offset"
    TOKEN = "token"


@dataclass(frozen=True, slots=True)
class OffsetCursor:
    """A 1-based page number plus the page size used to reach it."""

    page: int
    page_size: int

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1 (got {self.page})")
        if self.page_size <= 0:
            raise ValueError(f"page_size must be > 0 (got {self.page_size})")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def next(self) -> "OffsetCursor":
        return OffsetCursor(page=self.page + 1, page_size=self.page_size)


@dataclass(frozen=True, slots=True)
class TokenCursor:
    """An opaque server-issued scroll token; ``None`` once the server has no more pages."""

    token: str | None = None

    @property
    def exhausted(self) -> bool:
        return self.token is None


Cursor = Union[OffsetCursor, TokenCursor]


def initial_cursor(style: PaginationStyle, page_size: int) -> Cursor:
    """Return the cursor used to request the first page of a query."""

    if style is PaginationStyle.OFFSET:
        return OffsetCursor(page=1, page_size=page_size)
    return TokenCursor(token=None)


def next_request_cursor(cursor: Cursor) -> Cursor | None:
    """Return the cursor for the page after ``cursor`` or ``None`` when there is none.

    Offset cursors describe the page that was just loaded, so the next request
    is one page further. Token cursors already describe where to resume.
    """

    if isinstance(cursor, OffsetCursor):
        return cursor.next()
    if cursor.exhausted:
        return None
    return cursor


__all__ = [
    "Cursor",
    "OffsetCursor",
    "PaginationStyle",
    "TokenCursor",
    "initial_cursor",
    "next_request_cursor",
]
