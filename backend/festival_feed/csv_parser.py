"""
csv_parser.py
~~~~~~~~~~~~~
Header-driven CSV parsing shared by both feeds.

Cells are associated with their header *name*, never their position, so the
sheet owners can reorder columns freely.

* Rows missing a required field are skipped silently – the sheets contain
  work-in-progress rows on purpose.
* Rows the *transform* rejects (returns ``None``) are skipped the same way.
* Structural damage (unterminated quotes, ragged rows) raises
  :class:`~festival_feed.errors.ParseError` with the first diagnostic.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, TypeVar

from .errors import ParseError

LOG = logging.getLogger("csv_parser")

T = TypeVar("T")


@dataclass
class ParseStats:
    """Diagnostics for rows that were dropped without an error."""

    rows_total: int = 0
    rows_kept: int = 0
    skipped_missing: int = 0
    skipped_invalid: int = 0

    @property
    def skipped(self) -> int:
        return self.skipped_missing + self.skipped_invalid


def _read_rows(text: str) -> list[list[str]]:
    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    try:
        return list(reader)
    except csv.Error as exc:
        raise ParseError(f"CSV parse error on line {reader.line_num}: {exc}") from exc


def _is_blank(row: list[str]) -> bool:
    return not any(cell.strip() for cell in row)


def parse_csv_by_header(
    text: str,
    required_fields: Iterable[str] = (),
    transform: Callable[[dict[str, str], int], T | None] | None = None,
    stats: ParseStats | None = None,
) -> list[T] | list[dict[str, str]]:
    """
    Parse *text* into a list of records keyed by header name.

    Args:
        text:            Raw CSV payload (first row is the header).
        required_fields: Headers that must hold a non-blank value.
        transform:       ``(record, i) -> T | None``; *i* is the positional
                         index of the data row. ``None`` drops the row.
        stats:           Optional :class:`ParseStats` filled in place.

    Raises:
        ParseError: malformed quoting or a row whose field count differs
                    from the header.
    """
    stats = stats if stats is not None else ParseStats()
    required = tuple(required_fields)

    if text.startswith("\ufeff"):
        text = text[1:]

    rows = [row for row in _read_rows(text) if not _is_blank(row)]
    if not rows:
        return []

    header = [name.strip() for name in rows[0]]
    results: list[Any] = []

    for i, row in enumerate(rows[1:]):
        if len(row) != len(header):
            kind = "TooFewFields" if len(row) < len(header) else "TooManyFields"
            raise ParseError(
                f"CSV parse error ({kind}): expected {len(header)} fields "
                f"but parsed {len(row)} in data row {i}"
            )

        stats.rows_total += 1
        record = dict(zip(header, row))

        if any(not (record.get(name) or "").strip() for name in required):
            stats.skipped_missing += 1
            continue

        if transform is None:
            results.append(record)
            stats.rows_kept += 1
            continue

        item = transform(record, i)
        if item is None:
            stats.skipped_invalid += 1
            continue
        results.append(item)
        stats.rows_kept += 1

    LOG.debug(
        "[csv] %d rows: kept %d, skipped %d missing + %d invalid",
        stats.rows_total,
        stats.rows_kept,
        stats.skipped_missing,
        stats.skipped_invalid,
    )
    return results


__all__ = ["ParseError", "ParseStats", "parse_csv_by_header"]
