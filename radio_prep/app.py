"""
FastAPI Web Application for Radio Show Prep

Endpoints:
  GET  /api/health                                   - Liveness + whether research is configured

  POST /api/shows/upload                             - Upload a playlist CSV (starts research)
  GET  /api/research/progress                        - Progress of the running research batch

  GET  /api/shows                                    - Show list (newest first)
  GET  /api/shows/active                             - The active show with all tracks
  POST /api/shows/{show_id}/activate                 - Switch the active show
  GET  /api/shows/{show_id}/tracks                   - Filtered tracks (search/genre/decade/region/played)
  GET  /api/shows/{show_id}/filter-options           - Distinct genres, regions, decades
  GET  /api/shows/{show_id}/stats                    - Dashboard counters
  POST /api/shows/{show_id}/tracks/{track_id}/played - Mark a track played

  GET  /api/export                                   - Download every show + play state as JSON
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List

import uvicorn
from fastapi import BackgroundTasks, FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger

from .config import Settings
from .csv_normalizer import CsvInputError, decode_upload
from .exporter import build_export, dumps_export, export_filename
from .filters import filter_options, filter_tracks, show_stats
from .models import PlayedFilter, Show, TrackFilters
from .pipeline import EnrichmentPipeline, parse_upload, prepare_show
from .research import ResearchClient
from .store import ResearchInProgressError, ShowStore, UnknownShowError, UnknownTrackError

# ---------------------------------------------------------------------------
# Singletons
# ---------------------------------------------------------------------------

settings = Settings.from_env()
store = ShowStore()
research_client = ResearchClient(settings)
pipeline = EnrichmentPipeline(research_client)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    if research_client.configured:
        logger.info(f"Claude API key found. Track research enabled ({settings.model}).")
    else:
        logger.warning("No ANTHROPIC_API_KEY set. Uploaded tracks get placeholder research.")
    logger.info("Radio Show Prep ready.")
    yield


app = FastAPI(title="Radio Show Prep", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_show(show_id: str) -> Show:
    try:
        return store.get_show(show_id)
    except UnknownShowError:
        raise HTTPException(status_code=404, detail=f"Show not found: {show_id}")


@app.get("/api/health")
async def health():
    return {"status": "ok", "researchConfigured": research_client.configured}


# ---------------------------------------------------------------------------
# Routes: Upload + research
# ---------------------------------------------------------------------------

async def _research_upload(records: List[Dict[str, str]], file_name: str) -> None:
    try:
        await prepare_show(store, pipeline, records, file_name)
    except Exception as e:
        # prepare_show already published the error to the progress record
        logger.error(f"Background research for {file_name} failed: {e}")


@app.post("/api/shows/upload", status_code=202)
async def upload_playlist(background_tasks: BackgroundTasks, file: UploadFile = File(...)):
    """
    Accept a playlist CSV and research it in the background.

    Poll ``/api/research/progress`` until ``busy`` is false; the new show is
    then the active show.
    """
    file_name = file.filename or "playlist.csv"
    text = decode_upload(await file.read())

    try:
        records = parse_upload(text)
    except CsvInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        store.begin_research()
    except ResearchInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(f"Upload accepted: {file_name} ({len(records)} rows)")
    background_tasks.add_task(_research_upload, records, file_name)
    return {"status": "researching", "fileName": file_name, "records": len(records)}


@app.get("/api/research/progress")
async def research_progress():
    progress = store.progress
    result = progress.to_wire()
    result["percent"] = round(progress.percent)
    return result


# ---------------------------------------------------------------------------
# Routes: Shows
# ---------------------------------------------------------------------------

@app.get("/api/shows")
async def list_shows():
    return [summary.to_wire() for summary in store.summaries()]


@app.get("/api/shows/active")
async def active_show():
    show = store.get_active_show()
    if show is None:
        raise HTTPException(status_code=404, detail="No active show")
    return JSONResponse(show.to_wire())


@app.post("/api/shows/{show_id}/activate")
async def activate_show(show_id: str):
    try:
        show = store.set_active_show(show_id)
    except UnknownShowError:
        raise HTTPException(status_code=404, detail=f"Show not found: {show_id}")
    return {"activeShowId": show.id}


@app.get("/api/shows/{show_id}/tracks")
async def show_tracks(
    show_id: str,
    search: str = "",
    genre: str = "",
    decade: str = "",
    region: str = "",
    played: PlayedFilter = PlayedFilter.ALL,
):
    """Tracks of a show after search + filters, in playlist order, with play state."""
    show = _get_show(show_id)
    filters = TrackFilters(genre=genre, decade=decade, region=region, played=played)
    tracks = filter_tracks(show.tracks, search, filters, store.played_checker(show_id))
    played_entries = store.played_entries(show_id)

    results: List[Dict[str, Any]] = []
    for track in tracks:
        record = track.to_wire()
        entry = played_entries.get(track.id)
        record["played"] = entry is not None
        record["playedAt"] = entry.timestamp if entry else None
        results.append(record)
    return {"showId": show_id, "total": len(show.tracks), "count": len(results), "tracks": results}


@app.get("/api/shows/{show_id}/filter-options")
async def show_filter_options(show_id: str):
    return filter_options(_get_show(show_id).tracks).to_wire()


@app.get("/api/shows/{show_id}/stats")
async def show_dashboard_stats(show_id: str):
    show = _get_show(show_id)
    return show_stats(show.tracks, store.played_checker(show_id)).to_wire()


@app.post("/api/shows/{show_id}/tracks/{track_id:path}/played")
async def mark_track_played(show_id: str, track_id: str):
    try:
        entry = store.mark_played(track_id, show_id=show_id)
    except UnknownShowError:
        raise HTTPException(status_code=404, detail=f"Show not found: {show_id}")
    except UnknownTrackError:
        raise HTTPException(status_code=404, detail=f"Track not found: {track_id}")
    return {"showId": show_id, "trackId": track_id, **entry.to_wire()}


# ---------------------------------------------------------------------------
# Routes: Export
# ---------------------------------------------------------------------------

@app.get("/api/export")
async def export_data():
    """Every show and the play state as a downloadable JSON file."""
    filename = export_filename(settings.export_prefix)
    return Response(
        content=dumps_export(build_export(store)),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    port = settings.port
    logger.info(f"Starting Radio Show Prep on port {port}")
    uvicorn.run(
        "radio_prep.app:app",
        host="0.0.0.0",
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    main()
