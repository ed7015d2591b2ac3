"""
tests/conftest.py
~~~~~~~~~~~~~~~~~
Global pytest fixtures and small builders shared by the suite.

`make_festival` builds a :class:`Festival` with only the fields a test
cares about; `festival_csv` renders rows under the primary-feed header.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from festival_feed.models import Festival


pytest_plugins = ["pytest_asyncio"]

HEADER = ("ID", "お祭り名", "緯度", "経度", "開始日")


def _make_festival(name: str = "祭", **fields: Any) -> Festival:
    fields.setdefault("id", name)
    fields.setdefault("index", 0)
    return Festival(name=name, **fields)


def _festival_csv(*rows: tuple[str, ...], header: tuple[str, ...] = HEADER) -> str:
    lines = [",".join(header)]
    lines.extend(",".join(row) for row in rows)
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_festival() -> Callable[..., Festival]:
    return _make_festival


@pytest.fixture
def festival_csv() -> Callable[..., str]:
    return _festival_csv
