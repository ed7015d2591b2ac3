"""
session_cache.py
~~~~~~~~~~~~~~~~
Keep the last good snapshot of each feed for the **current session** so a
list can be shown instantly while the network refresh runs.

* Storage is a plain string key-value mapping (an in-memory ``dict`` by
  default). Nothing is written to disk; the data dies with the session.
* Snapshots are stored as JSON text. The same text is what we diff against,
  so an unchanged upstream feed never causes a write.
* A corrupted entry reads as a miss – never an exception.
* :meth:`SessionCache.teardown` drops the fast-changing events feed so the
  next session never opens on arbitrarily old event data.
"""

from __future__ import annotations

import json
import logging
from typing import Final, Iterable, MutableMapping

from .constants import PRIMARY_CACHE_KEY, SECONDARY_CACHE_KEY
from .models import Festival, Snapshot

LOG = logging.getLogger("session_cache")

TEARDOWN_KEYS: Final[tuple[str, ...]] = (SECONDARY_CACHE_KEY,)


def serialize(snapshot: Iterable[Festival]) -> str:
    """Canonical JSON text for *snapshot* (field order is fixed by the model)."""
    return json.dumps([rec.to_dict() for rec in snapshot], ensure_ascii=False)


def deserialize(text: str) -> Snapshot:
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON list, got {type(data).__name__}")
    return tuple(Festival.from_dict(item) for item in data)


class SessionCache:
    """Session-scoped snapshot store with write-on-difference semantics."""

    def __init__(self, store: MutableMapping[str, str] | None = None) -> None:
        self._store: MutableMapping[str, str] = store if store is not None else {}
        self.writes = 0

    def get(self, key: str = PRIMARY_CACHE_KEY) -> Snapshot | None:
        raw = self._store.get(key)
        if raw is None:
            return None
        try:
            snapshot = deserialize(raw)
        except Exception as exc:  # noqa: BLE001 – corrupted entry → miss
            LOG.warning("[cache] dropping unreadable %r entry: %s", key, exc)
            return None
        LOG.debug("[cache] hit %r (%d records)", key, len(snapshot))
        return snapshot

    def set(self, key: str, snapshot: Iterable[Festival]) -> None:
        self._write(key, serialize(snapshot))

    def set_if_changed(self, key: str, snapshot: Iterable[Festival]) -> bool:
        """
        Store *snapshot* only when it differs from the cached one.

        Returns:
            True if the entry was (re)written, False if content was identical.
        """
        text = serialize(snapshot)
        if self._store.get(key) == text:
            LOG.debug("[cache] %r unchanged – skip write", key)
            return False
        self._write(key, text)
        return True

    def clear(self, key: str) -> None:
        if self._store.pop(key, None) is not None:
            LOG.info("[cache] cleared %r", key)

    def teardown(self) -> None:
        """Session end: forget time-sensitive feeds."""
        for key in TEARDOWN_KEYS:
            self.clear(key)

    def _write(self, key: str, text: str) -> None:
        self._store[key] = text
        self.writes += 1
        LOG.info("[cache] stored %r (%d bytes)", key, len(text.encode("utf-8")))


__all__ = ["SessionCache", "serialize", "deserialize", "TEARDOWN_KEYS"]
