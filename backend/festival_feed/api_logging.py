"""
api_logging.py
~~~~~~~~~~~~~~
One concise log line per outbound feed request, and (optionally) an
exception for anything that is not a 2xx.

Usage example
-------------
>>> async with httpx.AsyncClient() as cli:
...     resp = await logged_request_async(cli, "get", FEED_URL)
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

LOG = logging.getLogger("extapi")


def _log_response(verb: str, url: str, response: httpx.Response, latency_ms: float) -> None:
    code = response.status_code
    size = len(response.content)
    if code >= 500:
        LOG.warning("%s %s → %s (%.0f ms)", verb, url, code, latency_ms)
    elif code >= 400:
        LOG.info("%s %s → %s (%.0f ms)", verb, url, code, latency_ms)
    else:
        LOG.info("%s %s → %s %d B (%.0f ms)", verb, url, code, size, latency_ms)


async def logged_request_async(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *args: Any,
    raise_for_status: bool = True,
    **kwargs: Any,
) -> httpx.Response:
    """
    Issue one request through *client* and log verb, URL, status, size, latency.

    Parameters
    ----------
    client:
        ``httpx.AsyncClient`` instance.
    method:
        HTTP verb, e.g. ``"get"``.
    raise_for_status:
        *True* ⇒ any non-2xx status raises :class:`httpx.HTTPStatusError`.
        *False* ⇒ never raise; the caller decides.
    """
    verb = method.upper()
    t0 = time.perf_counter()
    try:
        response = await client.request(verb, url, *args, **kwargs)
    except httpx.HTTPError as exc:
        latency_ms = (time.perf_counter() - t0) * 1000.0
        LOG.warning("FAIL %s %s %.0f ms %s", verb, url, latency_ms, exc)
        raise

    _log_response(verb, url, response, (time.perf_counter() - t0) * 1000.0)

    if raise_for_status and not response.is_success:
        response.raise_for_status()

    return response


__all__ = ["logged_request_async"]
