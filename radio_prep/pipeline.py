"""
Enrichment pipeline: researches every playlist row and assembles the show.

Tracks are researched strictly one at a time with a short pause in between,
which keeps the provider request rate low and the progress percentage
monotonic.  A failing track never aborts the run; it is added with
placeholder text and listed in ``PipelineResult.failures``.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from loguru import logger

from .config import DEFAULT_RESEARCH_DELAY
from .csv_normalizer import NoTracksError, count_resolvable, normalize, resolve_artist_title
from .models import ResearchStatus, Show, TalkingPoint, Track, utc_now_iso
from .research import UNKNOWN, ResearchClient

RESEARCH_FAILED = "Research failed - please add manually"

ProgressCallback = Callable[[float, str], Union[None, Awaitable[None]]]


@dataclass
class PipelineResult:
    tracks: List[Track] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)
    total_records: int = 0

    @property
    def success_count(self) -> int:
        return len(self.tracks) - len(self.failures)

    def completion_message(self) -> str:
        if self.failures:
            return (
                f"Upload complete! {self.success_count} tracks researched successfully, "
                f"{len(self.failures)} failed."
            )
        return f"Upload complete! Successfully researched {self.success_count} tracks."


def make_track_id(artist: str, title: str, index: int, millis: Optional[int] = None) -> str:
    """Track id unique within a show, even for repeated artist/title rows."""
    if millis is None:
        millis = int(time.time() * 1000)
    return f"{artist}-{title}-{millis}-{index}"


def failed_track(track_id: str, artist: str, title: str, record: Mapping[str, str]) -> Track:
    return Track(
        id=track_id,
        artist=artist,
        title=title,
        original_data=dict(record),
        release_year=UNKNOWN,
        genre=UNKNOWN,
        sub_genre=UNKNOWN,
        region=UNKNOWN,
        cultural_context=RESEARCH_FAILED,
        musical_facts=RESEARCH_FAILED,
        global_connections=RESEARCH_FAILED,
        talking_points=[
            TalkingPoint(text=f"{title} by {artist}"),
            TalkingPoint(text="Manual research needed"),
            TalkingPoint(text="Add your own notes"),
        ],
        sources=[],
        research_status=ResearchStatus.FAILED,
    )


async def _notify(callback: Optional[ProgressCallback], percent: float, label: str) -> None:
    if callback is None:
        return
    outcome = callback(percent, label)
    if inspect.isawaitable(outcome):
        await outcome


class EnrichmentPipeline:
    """
    Drives a ResearchClient across parsed playlist rows, one row at a time.
    """

    def __init__(self, client: ResearchClient, delay: Optional[float] = None):
        self.client = client
        if delay is None:
            delay = client.settings.research_delay
        self.delay = DEFAULT_RESEARCH_DELAY if delay is None else delay

    async def run(
        self,
        records: List[Mapping[str, str]],
        on_progress: Optional[ProgressCallback] = None,
    ) -> PipelineResult:
        """
        Research every resolvable record in order.

        Args:
            records:     Field mappings from ``normalize()``.
            on_progress: ``(percent, "Artist - Title")`` callback, sync or async.
                Called before each research call and again after it.

        Returns:
            PipelineResult whose ``tracks`` holds one Track per resolvable record.
        """
        total = len(records)
        result = PipelineResult(total_records=total)
        percent = 0.0
        started = time.monotonic()
        skipped = 0
        resolvable = [i for i, r in enumerate(records) if resolve_artist_title(r) is not None]
        last_index = resolvable[-1] if resolvable else -1

        logger.info(f"Researching {total} playlist rows")

        for i, record in enumerate(records):
            resolved = resolve_artist_title(record)
            if resolved is None:
                skipped += 1
                continue
            artist, title = resolved
            label = f"{artist} - {title}"

            await _notify(on_progress, percent, label)
            track_id = make_track_id(artist, title, i)

            try:
                research = await self.client.research(artist, title)
                track = Track(
                    id=track_id,
                    artist=artist,
                    title=title,
                    original_data=dict(record),
                    research_status=research.status,
                    date_added=utc_now_iso(),
                    **research.model_dump(exclude={"status"}),
                )
            except Exception as e:
                logger.error(f"Failed to research track {label}: {e}")
                result.failures.append(label)
                track = failed_track(track_id, artist, title, record)

            result.tracks.append(track)
            percent = (i + 1) / total * 100
            await _notify(on_progress, percent, label)

            if i < last_index and self.delay > 0:
                await asyncio.sleep(self.delay)

        if skipped:
            logger.warning(f"Skipped {skipped} rows without an artist and title")
        logger.info(
            f"Research finished: {len(result.tracks)} tracks, {len(result.failures)} failed "
            f"in {time.monotonic() - started:.1f}s"
        )
        return result


# ---------------------------------------------------------------------------
# Upload orchestration
# ---------------------------------------------------------------------------

def show_name(file_name: str, created: Optional[datetime] = None) -> str:
    """``Show 3/7/2025 - playlist`` style name from the upload date and file name."""
    created = created or datetime.now()
    stem = file_name.replace(".csv", "")
    return f"Show {created.month}/{created.day}/{created.year} - {stem}"


def parse_upload(raw_text: str) -> List[Dict[str, str]]:
    """
    Normalize upload text and make sure at least one row is usable.

    Raises:
        EmptyInputError: fewer than two non-blank lines.
        NoTracksError:   no row resolves to an artist and title.
    """
    records = normalize(raw_text)
    if count_resolvable(records) == 0:
        raise NoTracksError(
            "No valid tracks found in CSV. Please ensure it has artist and title columns."
        )
    return records


async def prepare_show(
    store: Any,
    pipeline: EnrichmentPipeline,
    records: List[Mapping[str, str]],
    file_name: str,
) -> Show:
    """
    Research ``records`` and add the finished show to ``store``.

    The store must already be marked busy (``store.begin_research()``); this
    always releases it, publishing the completion message or the error.
    """
    message = ""
    error: Optional[str] = None
    try:
        async def _progress(percent: float, label: str) -> None:
            store.update_progress(percent=percent, current=label)

        result = await pipeline.run(records, on_progress=_progress)
        show = store.create_show(
            name=show_name(file_name),
            file_name=file_name,
            tracks=result.tracks,
        )
        message = result.completion_message()
        store.update_progress(failures=result.failures)
        logger.info(message)
        return show
    except Exception as e:
        error = str(e)
        logger.error(f"Show preparation failed for {file_name}: {e}")
        raise
    finally:
        store.end_research(message=message, error=error)
