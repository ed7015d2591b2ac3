"""
pager.py
~~~~~~~~
Hand a sorted list to the UI a page at a time (infinite scroll).

The pager does not care *why* more rows are requested (scroll threshold,
button, test); ``load_more()`` always appends the next ``increment`` rows of
the current collection, and is a no-op once everything is delivered.
"""

from __future__ import annotations

import logging
from typing import Final, Generic, Sequence, TypeVar

LOG = logging.getLogger("pager")

T = TypeVar("T")

INITIAL_SIZE: Final = 20
INCREMENT: Final = 10


class Pager(Generic[T]):
    def __init__(self, initial_size: int = INITIAL_SIZE, increment: int = INCREMENT) -> None:
        if initial_size < 1 or increment < 1:
            raise ValueError("page sizes must be >= 1")
        self.initial_size = initial_size
        self.increment = increment
        self._items: tuple[T, ...] = ()
        self._delivered = 0

    @property
    def total(self) -> int:
        return len(self._items)

    @property
    def page(self) -> tuple[T, ...]:
        """Everything delivered so far."""
        return self._items[: self._delivered]

    @property
    def has_more(self) -> bool:
        return self._delivered < len(self._items)

    def reset(self, items: Sequence[T]) -> tuple[T, ...]:
        """Start over on a new collection; returns the first page."""
        self._items = tuple(items)
        self._delivered = min(self.initial_size, len(self._items))
        return self.page

    def load_more(self) -> tuple[T, ...]:
        """Return only the newly delivered rows (empty once exhausted)."""
        if not self.has_more:
            LOG.debug("[pager] load_more ignored – all %d delivered", self.total)
            return ()
        start = self._delivered
        self._delivered = min(start + self.increment, len(self._items))
        return self._items[start : self._delivered]


__all__ = ["Pager", "INITIAL_SIZE", "INCREMENT"]
