"""
main.py – FastAPI entry point
=============================

* On startup both feeds open from the session cache (if any) and revalidate;
  a background loop refetches every ``REFRESH_INTERVAL_S``.
* ``/festivals`` rebuilds the shared list view (filters → order → first
  page); ``/festivals/more`` appends the next page.
* A feed that never loaded answers 503; a feed serving stale data answers
  200 with ``stale: true`` and the failure reason.
* Shutdown cancels the loop and tears the session cache down.
"""

from __future__ import annotations

# ─── Std-lib / third-party ────────────────────────────────────────────
import asyncio
import contextlib
import datetime as dt
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

# ─── Project modules ──────────────────────────────────────────────────
from .config import FeedConfig
from .context import PipelineContext, build_context
from .feed_service import FeedService
from .filters import (
    FilterCriteria,
    apply_filters,
    count_by_category,
    list_areas,
    list_statuses,
)
from .list_view import FestivalListView
from .sorting import OrderBy

# ─── Logging ──────────────────────────────────────────────────────────
import logging
import sys

LOG_BG = logging.getLogger("bg")
LOG = logging.getLogger("api")

_LOGGER_NAMES = (
    "bg",
    "api",
    "extapi",
    "feed_service",
    "session_cache",
    "csv_parser",
    "position_provider",
    "distance_engine",
    "list_view",
    "context",
    "config",
)

# Configure project loggers to output to stdout
_handler = logging.StreamHandler(sys.stdout)
_handler.setFormatter(logging.Formatter("%(levelname)s:     %(name)s - %(message)s"))
for _name in _LOGGER_NAMES:
    _logger = logging.getLogger(_name)
    _logger.addHandler(_handler)
    _logger.setLevel(logging.INFO)

# ---------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------
load_dotenv()


# ---------------------------------------------------------------------
# Lifespan – feed start-up and background revalidation
# ---------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: N802 – FastAPI naming style
    """Open both feeds, then refetch them periodically until shutdown."""
    config = FeedConfig.from_env()
    ctx = build_context(config)
    app.state.ctx = ctx
    app.state.view = FestivalListView(ctx)

    try:
        await ctx.start()
    except Exception as exc:  # noqa: BLE001 – keep serving; loop retries
        LOG.warning("[init] initial feed load failed: %s", exc)

    async def _loop() -> None:
        while True:
            await asyncio.sleep(config.refresh_interval_s)
            LOG_BG.info("[loop] tick")
            try:
                await ctx.refresh()
            except Exception as exc:
                LOG_BG.error("[loop] crashed: %s", exc, exc_info=True)

    task = asyncio.create_task(_loop())

    yield  # ⇢ application runs here

    # Shutdown: stop the loop, then end the session
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    ctx.teardown()


# ---------------------------------------------------------------------
# FastAPI instance & middleware
# ---------------------------------------------------------------------
app = FastAPI(title="Festival feed", lifespan=lifespan)

ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _ctx() -> PipelineContext:
    return app.state.ctx


def _view() -> FestivalListView:
    return app.state.view


def _feed_meta(service: FeedService) -> dict[str, Any]:
    """
    Loading / stale / error flags for a response body.

    Raises 503 when the feed failed and there is nothing to serve.
    """
    st = service.state
    if st.error and st.error["kind"] == "hard":
        raise HTTPException(status_code=503, detail=st.error["reason"])
    return {
        "loading": st.loading,
        "stale": st.stale,
        "error": st.error["reason"] if st.error else None,
    }


def _location(lng: float | None, lat: float | None) -> tuple[float, float] | None:
    if lng is None and lat is None:
        return None
    if lng is None or lat is None:
        raise HTTPException(status_code=422, detail="lng and lat must be given together")
    return (lng, lat)


# Health probe --------------------------------------------------------
@app.get("/healthz", response_class=PlainTextResponse)
async def healthz() -> PlainTextResponse:
    """Return HTTP 200 with body “ok” if the app is up."""
    return PlainTextResponse("ok", status_code=200)


# ---------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------
@app.get("/festivals")
async def festivals(
    q: str = "",
    category: str = "",
    area: str = "",
    status: str = "",
    open_now: bool = False,
    has_parking: bool = False,
    upcoming: bool = False,
    on_date: dt.date | None = None,
    order_by: OrderBy | None = None,
    lng: float | None = Query(None, ge=-180, le=180),
    lat: float | None = Query(None, ge=-90, le=90),
) -> JSONResponse:
    """
    Filtered, ordered first page of the festival list.

    ``order_by=distance`` needs a position: ``lng``/``lat``, a configured
    home location or a previously cached position. Without one the list
    comes back in chronological order (see ``mode`` in the response).
    """
    meta = _feed_meta(_ctx().festivals)
    criteria = FilterCriteria(
        query=q,
        category=category,
        area=area,
        status=status,
        open_now=open_now,
        has_parking=has_parking,
        upcoming=upcoming,
        on_date=on_date,
    )
    view = _view()
    await view.rebuild(
        criteria,
        mode=order_by or _ctx().config.order_by,
        context_location=_location(lng, lat),
    )
    return JSONResponse({**view.to_dict(), **meta})


@app.get("/festivals/more")
async def festivals_more() -> JSONResponse:
    """Next page of the current list; empty ``items`` once exhausted."""
    meta = _feed_meta(_ctx().festivals)
    view = _view()
    if view.needs_rebuild:
        # New snapshot since the last page: restart from the top.
        items = await view.rebuild()
    else:
        items = view.load_more()
    return JSONResponse(
        {
            "items": [rec.to_dict() for rec in items],
            "delivered": len(view.page),
            "total": view.total,
            "has_more": view.has_more,
            **meta,
        }
    )


@app.get("/festivals/filters")
async def festival_filters() -> JSONResponse:
    """Values available to the filter controls."""
    records = _ctx().festivals.records
    return JSONResponse(
        {
            "categories": count_by_category(records),
            "areas": list_areas(records),
            "statuses": list_statuses(records),
        }
    )


@app.get("/festivals/{festival_id}")
async def festival_detail(festival_id: str) -> JSONResponse:
    meta = _feed_meta(_ctx().festivals)
    for rec in _ctx().festivals.records:
        if rec.id == festival_id:
            return JSONResponse({"item": rec.to_dict(), **meta})
    raise HTTPException(status_code=404, detail=f"festival {festival_id!r} not found")


@app.get("/events")
async def events(q: str = "", on_date: dt.date | None = None) -> JSONResponse:
    """Events feed, ordered by the first date of each period."""
    service = _ctx().events
    meta = _feed_meta(service)
    items = apply_filters(service.records, FilterCriteria(query=q, on_date=on_date))
    return JSONResponse(
        {"items": [rec.to_dict() for rec in items], "total": len(items), **meta}
    )


@app.post("/refresh")
async def refresh() -> JSONResponse:
    """Run one revalidation cycle for both feeds right now."""
    ctx = _ctx()
    phases = {
        "festivals": (await ctx.festivals.refresh()).value,
        "events": (await ctx.events.refresh()).value,
    }
    return JSONResponse(phases)


@app.get("/status.json")
async def status_json() -> JSONResponse:
    ctx = _ctx()
    position = ctx.positions.cached
    return JSONResponse(
        {
            "festivals": ctx.festivals.state.to_dict(),
            "events": ctx.events.state.to_dict(),
            "position": position.signature if position else None,
            "distance_memo": len(ctx.distances),
            "cache_writes": ctx.cache.writes,
            "order_by": ctx.config.order_by.value,
        }
    )
