"""Ordered, de-duplicated client-side view of a paginated list."""

from __future__ import annotations

import logging
from typing import Callable, Generic, Iterable, Iterator, List, Sequence, TypeVar

from .cursor import PaginationStyle
from .errors import InvariantViolation

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RecordStore(Generic[T]):
    """Hold fetched records in server order with unique keys.

    Offset-paginated stores derive ``has_more`` from ``len(records) < total``;
    token-paginated stores trust the server flag. ``has_more`` never flips from
    false back to true until the store is cleared.
    """

    def __init__(
        self,
        key_of: Callable[[T], str],
        *,
        pagination: PaginationStyle = PaginationStyle.OFFSET,
    ) -> None:
        self._key_of = key_of
        self._pagination = pagination
        self._records: List[T] = []
        self._index: dict[str, int] = {}
        self._total = 0
        self._has_more = False
        self._exhausted = False
        self.violations: list[InvariantViolation] = []

    @property
    def records(self) -> tuple[T, ...]:
        return tuple(self._records)

    @property
    def total(self) -> int:
        return self._total

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def pagination(self) -> PaginationStyle:
        return self._pagination

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[T]:
        return iter(tuple(self._records))

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def keys(self) -> list[str]:
        return [self._key_of(record) for record in self._records]

    def get(self, key: str) -> T | None:
        position = self._index.get(key)
        return None if position is None else self._records[position]

    def clear(self) -> None:
        self._records = []
        self._index = {}
        self._total = 0
        self._has_more = False
        self._exhausted = False

    def replace(self, records: Sequence[T], total: int | None, has_more: bool) -> None:
        """Swap in a fresh snapshot for a new query."""

        self._records, self._index = self._dedupe(records)
        self._exhausted = False
        self._total = 0
        self._total = self._normalise_total(total)
        self._has_more = self._derive_has_more(has_more)
        self._exhausted = not self._has_more

    def append(self, records: Sequence[T], total: int | None, has_more: bool) -> None:
        """Merge the next page; known keys are updated in place, new keys go to the tail."""

        for record in records:
            key = self._key_of(record)
            position = self._index.get(key)
            if position is None:
                self._index[key] = len(self._records)
                self._records.append(record)
            else:
                self._records[position] = record
        self._total = self._normalise_total(total)
        self._update_has_more(has_more)

    def replace_head(
        self,
        records: Sequence[T],
        window_size: int,
        *,
        total: int | None = None,
        has_more: bool | None = None,
    ) -> None:
        """Replace the first ``window_size`` positions and keep the tail.

        Keys arriving in the new head are dropped from the tail, so a record that
        moved up a page is not listed twice.
        """

        window_size = max(0, window_size)
        head, head_index = self._dedupe(records)
        tail = [
            record
            for record in self._records[window_size:]
            if self._key_of(record) not in head_index
        ]
        self._records, self._index = self._dedupe([*head, *tail])
        if total is not None:
            self._total = self._normalise_total(total)
        if has_more is not None or self._pagination is PaginationStyle.OFFSET:
            self._update_has_more(bool(has_more))

    def patch_one(self, key: str, patch_fn: Callable[[T], T]) -> bool:
        position = self._index.get(key)
        if position is None:
            return False
        patched = patch_fn(self._records[position])
        new_key = self._key_of(patched)
        if new_key != key:
            raise ValueError(f"patch changed record key from {key!r} to {new_key!r}")
        self._records[position] = patched
        return True

    def remove_one(self, key: str) -> bool:
        position = self._index.get(key)
        if position is None:
            return False
        del self._records[position]
        self._index = {self._key_of(record): idx for idx, record in enumerate(self._records)}
        if self._total - 1 < 0:
            self._violation(f"total would drop below zero removing {key!r}")
        self._total = max(0, self._total - 1)
        if self._pagination is PaginationStyle.OFFSET and not self._exhausted:
            self._update_has_more(False)
        return True

    def _dedupe(self, records: Iterable[T]) -> tuple[List[T], dict[str, int]]:
        ordered: List[T] = []
        index: dict[str, int] = {}
        for record in records:
            key = self._key_of(record)
            position = index.get(key)
            if position is None:
                index[key] = len(ordered)
                ordered.append(record)
            else:
                ordered[position] = record
        return ordered, index

    def _normalise_total(self, total: int | None) -> int:
        if total is None:
            return max(self._total, len(self._records))
        if total < 0:
            self._violation(f"negative total {total} reported")
            return 0
        return int(total)

    def _derive_has_more(self, has_more: bool) -> bool:
        if self._pagination is PaginationStyle.OFFSET:
            return len(self._records) < self._total
        return bool(has_more)

    def _update_has_more(self, has_more: bool) -> None:
        derived = self._derive_has_more(has_more)
        if derived and self._exhausted:
            self._violation(
                f"has_more regressed to true with {len(self._records)} of {self._total} records loaded"
            )
            self._has_more = False
            return
        self._has_more = derived
        if not derived:
            self._exhausted = True

    def _violation(self, message: str) -> None:
        violation = InvariantViolation(message)
        self.violations.append(violation)
        logger.warning("list.store.invariant_violation detail=%s", message)


__all__ = ["RecordStore"]
