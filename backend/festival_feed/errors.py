"""
errors.py
~~~~~~~~~
Failures that abort one ingestion cycle. Both keep the previously cached
snapshot intact; the feed service turns them into a hard or soft error
depending on whether anything was ever loaded.
"""

from __future__ import annotations


class FeedError(Exception):
    """Base class for cycle-fatal feed failures."""


class FeedFetchError(FeedError):
    """The feed could not be downloaded (network error or non-2xx status)."""


class ParseError(FeedError):
    """The feed text is structurally broken; carries the first diagnostic."""
