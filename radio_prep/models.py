"""
Pydantic models for shows, tracks and research results.

Python attributes are snake_case; the wire format (HTTP API, export file,
provider response) is camelCase via the alias generator.  Both spellings are
accepted on input.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


def _number_to_str(v: Any) -> Any:
    """Accept ``1959`` where a string is expected; models often drop the quotes."""
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


LooseStr = Annotated[str, BeforeValidator(_number_to_str)]


# ---------------------------------------------------------------------------
# Research
# ---------------------------------------------------------------------------

class ResearchStatus(str, Enum):
    OK = "ok"
    UNAVAILABLE = "unavailable"   # no credential, or the provider call failed
    FAILED = "failed"             # the pipeline caught an exception from research


class Source(CamelModel):
    id: int = Field(gt=0)
    url: str
    title: str
    type: str = ""


class TalkingPoint(CamelModel):
    text: str
    sources: List[int] = Field(default_factory=list)


class ResearchResult(CamelModel):
    """Enrichment fields produced for one artist/title pair."""

    release_year: LooseStr
    genre: str
    sub_genre: str
    region: str
    cultural_context: str
    musical_facts: str
    global_connections: str
    talking_points: List[TalkingPoint]
    sources: List[Source] = Field(default_factory=list)
    status: ResearchStatus = ResearchStatus.OK


# ---------------------------------------------------------------------------
# Shows and tracks
# ---------------------------------------------------------------------------

class Track(CamelModel):
    id: str
    artist: str
    title: str
    original_data: Dict[str, str] = Field(default_factory=dict)
    release_year: str = "Unknown"
    genre: str = "Unknown"
    sub_genre: str = "Unknown"
    region: str = "Unknown"
    cultural_context: str = ""
    musical_facts: str = ""
    global_connections: str = ""
    talking_points: List[TalkingPoint] = Field(default_factory=list)
    sources: List[Source] = Field(default_factory=list)
    research_status: ResearchStatus = ResearchStatus.OK
    date_added: str = Field(default_factory=utc_now_iso)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    @property
    def label(self) -> str:
        return f"{self.artist} - {self.title}"


class Show(CamelModel):
    id: str
    name: str
    date: str
    file_name: str
    tracks: List[Track] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def get_track(self, track_id: str) -> Optional[Track]:
        for track in self.tracks:
            if track.id == track_id:
                return track
        return None


class PlayEntry(CamelModel):
    played: bool = True
    timestamp: str = Field(default_factory=utc_now_iso)


class PlayedFilter(str, Enum):
    ALL = "all"
    PLAYED = "played"
    UNPLAYED = "unplayed"


class TrackFilters(CamelModel):
    """Structured filters applied on top of the free-text search."""

    genre: str = ""
    decade: str = ""
    region: str = ""
    played: PlayedFilter = PlayedFilter.ALL


class FilterOptions(CamelModel):
    genres: List[str] = Field(default_factory=list)
    regions: List[str] = Field(default_factory=list)
    decades: List[int] = Field(default_factory=list)


class ShowStats(CamelModel):
    total: int = 0
    played: int = 0
    regions: int = 0
    decades: int = 0


class ShowSummary(CamelModel):
    id: str
    name: str
    date: str
    file_name: str
    track_count: int
    played_count: int


class ResearchProgress(CamelModel):
    """Observable state of the running (or most recent) enrichment run."""

    busy: bool = False
    percent: float = 0.0
    current: str = ""
    failures: List[str] = Field(default_factory=list)
    last_message: str = ""
    error: Optional[str] = None
