# backend/festival_feed/constants.py

"""
Constants shared across the feed pipeline: the User-Agent we send with
every feed download, the source header names of the festival sheet, and the
reference timezone used for "open now" checks.
"""

from __future__ import annotations

import re
from typing import Final

from dateutil import tz

USER_AGENT: Final = "festival-feed/1.0 (+https://sado-festival-calendar.example/about)"

JST: Final = tz.gettz("Asia/Tokyo")

# ── Source headers (primary festival sheet) ─────────────────────────────
H_ID: Final = "ID"
H_NAME: Final = "お祭り名"
H_LAT: Final = "緯度"
H_LNG: Final = "経度"

REQUIRED_FIELDS: Final[tuple[str, ...]] = (H_LAT, H_LNG, H_NAME)
EVENT_REQUIRED_FIELDS: Final[tuple[str, ...]] = ("イベント名",)

# Accepts "38.0", "-12", "138.25"; rejects "", "1e5", "N38.0", "38."
COORD_RE: Final = re.compile(r"^-?[0-9]+(\.[0-9]+)?$")

# Category / closed-day lists are separated by commas, 読点 or whitespace.
LIST_SPLIT_RE: Final = re.compile(r",|、|\s+")

# Festival scale vocabulary, largest first.
SCALE_ORDER: Final[tuple[str, ...]] = ("大規模", "中規模", "小規模")

# Session store keys
PRIMARY_CACHE_KEY: Final = "festival_list"
SECONDARY_CACHE_KEY: Final = "event_list"
