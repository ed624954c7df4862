"""Query parameters and session stamping for list fetches."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping


def _freeze_filters(filters: Mapping[str, Any] | tuple | None) -> tuple[tuple[str, Any], ...]:
    if not filters:
        return ()
    items = filters.items() if isinstance(filters, Mapping) else filters
    return tuple(sorted((str(key), value) for key, value in items))


@dataclass(frozen=True, slots=True)
class QuerySpec:
    """Everything that identifies one logical list query.

    Two specs with the same keywords, sort, filters and page size compare
    equal, regardless of how the filters were supplied.
    """

    keywords: str = ""
    sort: str | None = None
    filters: tuple[tuple[str, Any], ...] = field(default=())
    page_size: int = 10

    def __post_init__(self) -> None:
        object.__setattr__(self, "keywords", (self.keywords or "").strip())
        object.__setattr__(self, "filters", _freeze_filters(self.filters))
        if self.page_size <= 0:
            raise ValueError(f"page_size must be > 0 (got {self.page_size})")

    @property
    def filter_map(self) -> dict[str, Any]:
        return dict(self.filters)

    def with_keywords(self, keywords: str) -> "QuerySpec":
        return replace(self, keywords=keywords)

    def with_sort(self, sort: str | None) -> "QuerySpec":
        return replace(self, sort=sort)

    def with_filters(self, filters: Mapping[str, Any] | None) -> "QuerySpec":
        return replace(self, filters=_freeze_filters(filters))

    def to_params(self) -> dict[str, Any]:
        """Render the query as request parameters, omitting empty values."""

        params: dict[str, Any] = {}
        if self.keywords:
            params["keywords"] = self.keywords
        if self.sort:
            params["sort"] = self.sort
        for key, value in self.filters:
            if value is None or value == "":
                continue
            params[key] = value
        return params


class SessionCounter:
    """Strictly increasing counter stamped on every fetch."""

    def __init__(self) -> None:
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    def bump(self) -> int:
        self._current += 1
        return self._current

    def is_current(self, session: int) -> bool:
        return session == self._current


__all__ = ["QuerySpec", "SessionCounter"]
