"""
feed_service.py
~~~~~~~~~~~~~~~
Stale-while-revalidate ingestion of one CSV feed.

Cycle (one call to :meth:`FeedService.refresh`)
-----------------------------------------------
    IDLE → SERVING_CACHE (optional) → FETCHING → PARSED → COMPARED
         → APPLIED | DISCARDED
    (or FAILED when download / parse breaks)

* A cached snapshot is shown immediately; ``loading`` is only ever true
  when there is nothing to show.
* The new snapshot becomes visible only after it is fully parsed,
  normalised and sorted – never partially.
* Identical content → no cache write and the visible tuple keeps its
  identity, so consumers do not re-render.
* Every cycle takes a generation number; a cycle overtaken by a newer one
  is dropped at the compare step (newest request wins).
* Fetch / parse failures keep whatever is cached. The error slot says
  ``"hard"`` when nothing was ever loaded, ``"soft"`` (plus ``stale``)
  otherwise.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import enum
import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Final, Iterable, Sequence

import httpx
from dateutil import tz

from .api_logging import logged_request_async
from .constants import USER_AGENT
from .csv_parser import ParseStats, parse_csv_by_header
from .errors import FeedError, FeedFetchError, ParseError
from .models import Festival, Snapshot
from .session_cache import SessionCache

UTC: Final = tz.UTC
LOG = logging.getLogger("feed_service")

Fetcher = Callable[[str], Awaitable[str]]
Transform = Callable[[dict[str, str], int], Festival | None]
Sorter = Callable[[Iterable[Festival]], Sequence[Festival]]
Listener = Callable[[Snapshot], None]


class Phase(str, enum.Enum):
    IDLE = "idle"
    SERVING_CACHE = "serving_cache"
    FETCHING = "fetching"
    PARSED = "parsed"
    COMPARED = "compared"
    APPLIED = "applied"
    DISCARDED = "discarded"
    FAILED = "failed"


# ── Transport ────────────────────────────────────────────────────────────
async def fetch_feed_text(url: str, *, timeout: float = 15.0) -> str:
    """
    Download *url* and return its body as UTF-8 text.

    Raises:
        FeedFetchError: network failure or non-2xx status.
        ParseError:     body is not valid UTF-8.
    """
    try:
        async with httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        ) as client:
            resp = await logged_request_async(client, "get", url)
    except httpx.HTTPStatusError as exc:
        raise FeedFetchError(
            f"Feed download failed: HTTP {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        raise FeedFetchError(f"Feed download failed: {exc}") from exc

    try:
        return resp.content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"Feed is not valid UTF-8: {exc}") from exc


# ── Feed definition & visible state ──────────────────────────────────────
@dataclass(frozen=True)
class FeedSpec:
    name: str
    url: str
    cache_key: str
    required_fields: tuple[str, ...]
    transform: Transform
    sorter: Sorter = tuple


@dataclass
class FeedState:
    snapshot: Snapshot | None = None
    loading: bool = False
    error: dict[str, str] | None = None
    stale: bool = False
    phase: Phase = Phase.IDLE
    generation: int = 0
    stats: ParseStats | None = None
    updated_at: dt.datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "records": len(self.snapshot) if self.snapshot is not None else None,
            "loading": self.loading,
            "error": self.error,
            "stale": self.stale,
            "phase": self.phase.value,
            "generation": self.generation,
            "skipped_rows": self.stats.skipped if self.stats else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class FeedService:
    """Owns one feed's visible snapshot and its refresh cycles."""

    def __init__(
        self,
        spec: FeedSpec,
        cache: SessionCache,
        fetcher: Fetcher | None = None,
        *,
        fetch_timeout_s: float = 15.0,
    ) -> None:
        self.spec = spec
        self._cache = cache
        self._fetcher = fetcher
        self._fetch_timeout_s = fetch_timeout_s
        self._state = FeedState()
        self._generation = 0
        self._listeners: list[Listener] = []
        self.background: asyncio.Task | None = None

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def records(self) -> Snapshot:
        return self._state.snapshot or ()

    # ── listeners ────────────────────────────────────────────────────────
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return functools.partial(self._listeners.remove, listener)

    def _notify(self, snapshot: Snapshot) -> None:
        for listener in list(self._listeners):
            listener(snapshot)

    # ── cycle steps ──────────────────────────────────────────────────────
    def _set_phase(self, phase: Phase) -> None:
        self._state.phase = phase
        LOG.debug("[%s] → %s", self.spec.name, phase.value)

    def serve_cache(self) -> bool:
        """Show the cached snapshot right away. Returns True on a cache hit."""
        cached = self._cache.get(self.spec.cache_key)
        if cached is None:
            return False
        self._state.snapshot = cached
        self._state.loading = False
        self._set_phase(Phase.SERVING_CACHE)
        LOG.info("[%s] serving %d cached records", self.spec.name, len(cached))
        return True

    async def _fetch(self) -> str:
        if self._fetcher is not None:
            return await self._fetcher(self.spec.url)
        return await fetch_feed_text(self.spec.url, timeout=self._fetch_timeout_s)

    def _fail(self, exc: FeedError) -> Phase:
        st = self._state
        st.loading = False
        if st.snapshot is None:
            st.error = {"kind": "hard", "reason": str(exc)}
            LOG.error("[%s] no data available: %s", self.spec.name, exc)
        else:
            st.error = {"kind": "soft", "reason": str(exc)}
            st.stale = True
            LOG.warning("[%s] refresh failed, keeping stale data: %s", self.spec.name, exc)
        self._set_phase(Phase.FAILED)
        return Phase.FAILED

    async def refresh(self) -> Phase:
        """Run one full cycle; returns the terminal phase."""
        self._generation += 1
        generation = self._generation
        st = self._state
        st.generation = generation

        if st.snapshot is None:
            self.serve_cache()
        st.loading = st.snapshot is None
        self._set_phase(Phase.FETCHING)

        stats = ParseStats()
        try:
            text = await self._fetch()
            records = parse_csv_by_header(
                text, self.spec.required_fields, self.spec.transform, stats
            )
        except FeedError as exc:
            if generation != self._generation:
                LOG.info("[%s] failure of superseded cycle %d ignored", self.spec.name, generation)
                return Phase.DISCARDED
            return self._fail(exc)

        ordered: Snapshot = tuple(self.spec.sorter(records))
        self._set_phase(Phase.PARSED)

        if generation != self._generation:
            LOG.info(
                "[%s] cycle %d superseded by %d – result dropped",
                self.spec.name,
                generation,
                self._generation,
            )
            self._set_phase(Phase.DISCARDED)
            return Phase.DISCARDED

        changed = self._cache.set_if_changed(self.spec.cache_key, ordered)
        self._set_phase(Phase.COMPARED)

        st.loading = False
        st.error = None
        st.stale = False
        st.stats = stats
        st.updated_at = dt.datetime.now(UTC)
        if stats.skipped:
            LOG.info(
                "[%s] %d rows skipped (%d missing fields, %d invalid)",
                self.spec.name,
                stats.skipped,
                stats.skipped_missing,
                stats.skipped_invalid,
            )

        if not changed and st.snapshot is not None:
            self._set_phase(Phase.DISCARDED)
            return Phase.DISCARDED

        st.snapshot = ordered
        self._set_phase(Phase.APPLIED)
        LOG.info("[%s] applied %d records", self.spec.name, len(ordered))
        self._notify(ordered)
        return Phase.APPLIED

    async def start(self) -> FeedState:
        """
        Open the feed for display.

        Cache hit → return immediately, refresh in the background
        (:attr:`background`). Cache miss → wait for the first fetch.
        """
        if self._state.snapshot is None and self.serve_cache():
            self.background = asyncio.create_task(self.refresh())
        else:
            await self.refresh()
        return self._state

    def invalidate(self) -> None:
        """Forget the snapshot both in memory and in the session cache."""
        self._cache.clear(self.spec.cache_key)
        self._state = FeedState()
        LOG.info("[%s] invalidated", self.spec.name)


__all__ = [
    "FeedService",
    "FeedSpec",
    "FeedState",
    "Phase",
    "fetch_feed_text",
]
