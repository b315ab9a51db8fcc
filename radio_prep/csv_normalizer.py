"""
Playlist CSV parsing.

Turns raw uploaded text into an ordered list of loosely-typed field mappings
(header -> value) and resolves artist/title from the many column names that
playlist exporters use.

Each line is tokenized on its own with the ``csv`` module, so quoted values
may contain commas but never newlines.  Blank lines are ignored everywhere.
"""

import csv
from typing import Dict, List, Mapping, Optional, Tuple

from loguru import logger

# ---------------------------------------------------------------------------
# Column alias tables, checked in order; first non-empty value wins
# ---------------------------------------------------------------------------

ARTIST_COLUMNS = ("artist", "Artist", "Track Artist")
TITLE_COLUMNS = ("title", "Title", "Track Name", "name")


class CsvInputError(ValueError):
    """The upload cannot produce a show."""


class EmptyInputError(CsvInputError):
    """Fewer than two non-blank lines (header + one row)."""


class NoTracksError(CsvInputError):
    """No row resolves to a non-empty artist and title."""


def _clean(token: str) -> str:
    return token.strip().strip('"').strip()


def _split_line(line: str, line_no: int) -> List[str]:
    """
    Tokenize one physical line.

    A quoted field never spans lines.  A line with an unbalanced quote, or one
    the ``csv`` module refuses (e.g. a field past ``csv.field_size_limit()``),
    is split on plain commas instead so the rest of the file is unaffected.
    """
    if line.count('"') % 2:
        logger.warning(f"CSV line {line_no} has an unbalanced quote; splitting on commas")
        return line.split(",")
    try:
        return next(csv.reader([line]), [])
    except csv.Error as e:
        logger.warning(f"CSV line {line_no} could not be tokenized ({e}); splitting on commas")
        return line.split(",")


def _rows(raw_text: str) -> List[List[str]]:
    text = raw_text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")
    rows = []
    for line_no, line in enumerate(text.split("\n"), start=1):
        if not line.strip():
            continue
        cleaned = [_clean(cell) for cell in _split_line(line, line_no)]
        if not any(cleaned):
            continue
        rows.append(cleaned)
    return rows


def normalize(raw_text: str) -> List[Dict[str, str]]:
    """
    Parse playlist CSV text into header -> value mappings, in file order.

    Rows whose first two values are not both non-empty are skipped.  Missing
    trailing values map to ``""``; values past the last header are dropped.

    Raises:
        EmptyInputError: fewer than two non-blank lines.
    """
    rows = _rows(raw_text or "")
    if len(rows) < 2:
        raise EmptyInputError("CSV needs a header row and at least one track row")

    headers = rows[0]
    records: List[Dict[str, str]] = []
    for values in rows[1:]:
        if len(values) < 2 or not values[0] or not values[1]:
            continue
        records.append({
            header: values[i] if i < len(values) else ""
            for i, header in enumerate(headers)
        })
    return records


def _first_value(record: Mapping[str, str], columns: Tuple[str, ...]) -> str:
    for col in columns:
        value = (record.get(col) or "").strip()
        if value:
            return value
    return ""


def resolve_artist_title(record: Mapping[str, str]) -> Optional[Tuple[str, str]]:
    """Return ``(artist, title)`` or None when either cannot be resolved."""
    artist = _first_value(record, ARTIST_COLUMNS)
    title = _first_value(record, TITLE_COLUMNS)
    if not artist or not title:
        return None
    return artist, title


def count_resolvable(records: List[Mapping[str, str]]) -> int:
    return sum(1 for r in records if resolve_artist_title(r) is not None)


def decode_upload(raw: bytes) -> str:
    """Decode uploaded bytes: UTF-8 (BOM tolerant), latin-1 as a last resort."""
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1")
