"""
Track filtering for the dashboard and show-prep views.

Everything here is a pure function of its inputs: the active show's tracks,
the search box, the structured filters and a played-state predicate.  Output
keeps the input order.
"""

import re
from typing import Callable, Iterable, List, Optional

from .models import FilterOptions, PlayedFilter, ShowStats, Track, TrackFilters

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def parse_year(release_year: str) -> Optional[int]:
    """Leading integer of ``release_year`` (``"1969 (UK)"`` -> 1969), else None."""
    match = _LEADING_INT_RE.match(release_year or "")
    return int(match.group(1)) if match else None


def decade_of(release_year: str) -> Optional[int]:
    """Decade bucket (1959 -> 1950); None when the year is not numeric."""
    year = parse_year(release_year)
    if year is None:
        return None
    return (year // 10) * 10


def _contains(haystack: str, needle: str) -> bool:
    return needle.lower() in (haystack or "").lower()


def matches(
    track: Track,
    search_term: str,
    filters: TrackFilters,
    is_played: Callable[[str], bool],
) -> bool:
    if search_term and not (
        _contains(track.artist, search_term)
        or _contains(track.title, search_term)
        or _contains(track.genre, search_term)
    ):
        return False

    if filters.genre and not _contains(track.genre, filters.genre):
        return False

    if filters.decade:
        decade = decade_of(track.release_year)
        if decade is None or str(decade) != filters.decade.strip():
            return False

    if filters.region and not _contains(track.region, filters.region):
        return False

    if filters.played == PlayedFilter.PLAYED:
        return is_played(track.id)
    if filters.played == PlayedFilter.UNPLAYED:
        return not is_played(track.id)
    return True


def filter_tracks(
    tracks: Iterable[Track],
    search_term: str = "",
    filters: Optional[TrackFilters] = None,
    is_played: Optional[Callable[[str], bool]] = None,
) -> List[Track]:
    """
    Tracks matching every active criterion, in their original order.

    Args:
        tracks:      Tracks of the active show.
        search_term: Case-insensitive substring of artist, title or genre.
        filters:     Genre/region substring, exact decade, played state.
        is_played:   ``track_id -> bool``; defaults to "nothing played".
    """
    filters = filters or TrackFilters()
    is_played = is_played or (lambda _track_id: False)
    search_term = search_term or ""
    return [t for t in tracks if matches(t, search_term, filters, is_played)]


def filter_options(tracks: Iterable[Track]) -> FilterOptions:
    """Distinct genres, regions and decades, in first-seen order."""
    genres: dict = {}
    regions: dict = {}
    decades: dict = {}
    for track in tracks:
        if track.genre:
            genres.setdefault(track.genre, None)
        if track.region:
            regions.setdefault(track.region, None)
        decade = decade_of(track.release_year)
        if decade is not None:
            decades.setdefault(decade, None)
    return FilterOptions(genres=list(genres), regions=list(regions), decades=list(decades))


def show_stats(tracks: List[Track], is_played: Callable[[str], bool]) -> ShowStats:
    """Dashboard counters: total, played, distinct regions and decades."""
    options = filter_options(tracks)
    return ShowStats(
        total=len(tracks),
        played=sum(1 for t in tracks if is_played(t.id)),
        regions=len(options.regions),
        decades=len(options.decades),
    )
