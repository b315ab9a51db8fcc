"""
Show/Track Store: the single owner of shows, the active show and play state.

Shows are snapshots of one research run: they are created whole and never
edited.  Play state is the only thing that changes afterwards and is keyed by
``(show id, track id)``, so identical track ids in two shows never share it.

Change notifications let a UI layer refresh without polling.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional

from loguru import logger

from .models import (
    PlayEntry,
    ResearchProgress,
    Show,
    ShowSummary,
    Track,
    utc_now_iso,
)

PLAY_KEY_SEPARATOR = "::"

# Event names passed to subscribers
SHOW_CREATED = "show_created"
TRACK_PLAYED = "track_played"
ACTIVE_SHOW_CHANGED = "active_show_changed"
RESEARCH_PROGRESS = "research_progress"

Listener = Callable[[str], None]


class UnknownShowError(KeyError):
    pass


class UnknownTrackError(KeyError):
    pass


class ResearchInProgressError(RuntimeError):
    pass


def play_key(show_id: str, track_id: str) -> str:
    """Flat key used for play state in the export document."""
    return f"{show_id}{PLAY_KEY_SEPARATOR}{track_id}"


class ShowStore:
    """In-memory shows list (newest first), active-show pointer and play state."""

    def __init__(self) -> None:
        self._shows: list[Show] = []
        self._by_id: dict[str, Show] = {}
        self._active_show_id: Optional[str] = None
        self._played: dict[tuple[str, str], PlayEntry] = {}
        self._listeners: list[Listener] = []
        self._busy = False
        self._progress = ResearchProgress()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(event)``; returns a function that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:  # noqa: BLE001
                logger.warning(f"Store listener failed on {event}: {exc}")

    # ------------------------------------------------------------------
    # Shows
    # ------------------------------------------------------------------

    def create_show(
        self,
        name: str,
        file_name: str,
        tracks: list[Track],
        show_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Show:
        """Add a show to the front of the list and make it the active show."""
        created_at = created_at or datetime.now(timezone.utc)
        if show_id is None:
            show_id = str(int(created_at.timestamp() * 1000))
            # two uploads in the same millisecond
            while show_id in self._by_id:
                show_id = str(int(show_id) + 1)
        elif show_id in self._by_id:
            raise ValueError(f"Show {show_id} already exists")

        show = Show(
            id=show_id,
            name=name,
            date=created_at.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            file_name=file_name,
            tracks=list(tracks),
        )
        self._shows.insert(0, show)
        self._by_id[show.id] = show
        self._active_show_id = show.id
        logger.info(f"Created show '{show.name}' with {len(show.tracks)} tracks")
        self._emit(SHOW_CREATED)
        return show

    def list_shows(self) -> list[Show]:
        return list(self._shows)

    def get_show(self, show_id: str) -> Show:
        show = self._by_id.get(show_id)
        if show is None:
            raise UnknownShowError(show_id)
        return show

    def get_active_show(self) -> Optional[Show]:
        if self._active_show_id is None:
            return None
        return self._by_id.get(self._active_show_id)

    def set_active_show(self, show_id: str) -> Show:
        show = self.get_show(show_id)
        if self._active_show_id != show_id:
            self._active_show_id = show_id
            self._emit(ACTIVE_SHOW_CHANGED)
        return show

    def summaries(self) -> list[ShowSummary]:
        return [
            ShowSummary(
                id=show.id,
                name=show.name,
                date=show.date,
                file_name=show.file_name,
                track_count=len(show.tracks),
                played_count=self.played_count(show.id),
            )
            for show in self._shows
        ]

    # ------------------------------------------------------------------
    # Play state
    # ------------------------------------------------------------------

    def mark_played(self, track_id: str, show_id: Optional[str] = None) -> PlayEntry:
        """
        Mark a track played. Re-marking keeps the first timestamp.

        ``show_id`` defaults to the active show.
        """
        if show_id is None:
            active = self.get_active_show()
            if active is None:
                raise UnknownShowError("no active show")
            show_id = active.id
        show = self.get_show(show_id)
        if show.get_track(track_id) is None:
            raise UnknownTrackError(track_id)

        key = (show_id, track_id)
        entry = self._played.get(key)
        if entry is not None:
            return entry

        entry = PlayEntry(played=True, timestamp=utc_now_iso())
        self._played[key] = entry
        logger.debug(f"Marked played: {track_id} in show {show_id}")
        self._emit(TRACK_PLAYED)
        return entry

    def is_played(self, show_id: str, track_id: str) -> bool:
        return (show_id, track_id) in self._played

    def played_entries(self, show_id: str) -> dict[str, PlayEntry]:
        """Track id → PlayEntry for one show."""
        return {tid: entry for (sid, tid), entry in self._played.items() if sid == show_id}

    def played_count(self, show_id: str) -> int:
        return sum(1 for (sid, _tid) in self._played if sid == show_id)

    def played_checker(self, show_id: str) -> Callable[[str], bool]:
        """``track_id -> bool`` predicate bound to one show, for the filter engine."""
        return lambda track_id: self.is_played(show_id, track_id)

    # ------------------------------------------------------------------
    # Research run state
    # ------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def progress(self) -> ResearchProgress:
        return self._progress.model_copy(deep=True)

    def begin_research(self) -> None:
        """Claim the single research slot; a second concurrent upload is refused."""
        if self._busy:
            raise ResearchInProgressError("A playlist is already being researched")
        self._busy = True
        self._progress = ResearchProgress(busy=True)
        self._emit(RESEARCH_PROGRESS)

    def update_progress(self, **fields: Any) -> None:
        self._progress = self._progress.model_copy(update=fields)
        self._emit(RESEARCH_PROGRESS)

    def end_research(self, message: str = "", error: Optional[str] = None) -> None:
        self._busy = False
        self._progress = self._progress.model_copy(update={
            "busy": False,
            "percent": 0.0,
            "current": "",
            "last_message": message,
            "error": error,
        })
        self._emit(RESEARCH_PROGRESS)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Read-only, JSON-ready view: ``{"shows": [...], "playedTracks": {...}}``."""
        return {
            "shows": [show.to_wire() for show in self._shows],
            "playedTracks": {
                play_key(sid, tid): entry.to_wire()
                for (sid, tid), entry in self._played.items()
            },
        }

    def __repr__(self) -> str:
        return f"ShowStore({len(self._shows)} shows, {len(self._played)} played)"
