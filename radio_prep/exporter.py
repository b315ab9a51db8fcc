"""
One-way JSON export of every show and the play state.

Document shape::

    {"shows": [...], "playedTracks": {"<showId>::<trackId>": {...}}, "exportDate": "..."}

There is no import path; the export is a backup / hand-off file only.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .config import DEFAULT_EXPORT_PREFIX


def build_export(store, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Export document for everything currently held by ``store``."""
    now = now or datetime.now(timezone.utc)
    document = store.snapshot()
    document["exportDate"] = now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return document


def export_filename(prefix: str = DEFAULT_EXPORT_PREFIX, now: Optional[datetime] = None) -> str:
    """``kxlu-radio-data-2025-03-07.json`` (UTC date)."""
    now = now or datetime.now(timezone.utc)
    return f"{prefix}-{now.strftime('%Y-%m-%d')}.json"


def dumps_export(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False)


def write_export(
    store,
    directory: Path,
    prefix: str = DEFAULT_EXPORT_PREFIX,
    now: Optional[datetime] = None,
) -> Path:
    """Write the export document to ``directory`` and return its path."""
    now = now or datetime.now(timezone.utc)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(prefix, now)
    path.write_text(dumps_export(build_export(store, now)), encoding="utf-8")
    return path
