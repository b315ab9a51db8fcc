"""
FastMCP Server for Claude Desktop Integration

Lets an MCP client research single tracks, prep a whole playlist into a show,
browse shows with the dashboard filters, and mark tracks played.  State lives
in this process only, like the web app.

To connect to Claude Desktop (stdio), add to claude_desktop_config.json:
{
  "mcpServers": {
    "radio-prep": {
      "command": "uv",
      "args": ["run", "--project", "/path/to/radio_prep", "python", "-m", "radio_prep.mcp_server"],
      "env": {"ANTHROPIC_API_KEY": "..."}
    }
  }
}

To run over HTTP (SSE):
  python -m radio_prep.mcp_server --transport sse [--host 127.0.0.1] [--port 8000]
"""

import signal
import sys
from typing import Any, Dict, Optional

from fastmcp import FastMCP
from loguru import logger

from .config import Settings
from .csv_normalizer import CsvInputError
from .exporter import write_export
from .filters import filter_tracks
from .models import PlayedFilter, TrackFilters
from .pipeline import EnrichmentPipeline, parse_upload, prepare_show
from .research import ResearchClient
from .store import ResearchInProgressError, ShowStore, UnknownShowError, UnknownTrackError

# ---------------------------------------------------------------------------
# Global state
# ---------------------------------------------------------------------------

mcp = FastMCP("Radio Show Prep")

settings = Settings.from_env()
store = ShowStore()
research_client = ResearchClient(settings)
pipeline = EnrichmentPipeline(research_client)


# ---------------------------------------------------------------------------
# MCP Tools
# ---------------------------------------------------------------------------

@mcp.tool()
async def research_track(artist: str, title: str) -> Dict[str, Any]:
    """
    Research one song for on-air talking points.

    Args:
        artist: Performing artist.
        title:  Song title.

    Returns:
        Release year, genre, sub-genre, region, cultural context, musical facts,
        global connections, 3 talking points citing source ids, and the sources.
        ``status`` is "unavailable" when research could not be done.
    """
    result = await research_client.research(artist, title)
    return result.to_wire()


@mcp.tool()
async def prep_playlist(csv_text: str, file_name: str = "playlist.csv") -> Dict[str, Any]:
    """
    Research every track of a playlist CSV and save it as a new show.

    The CSV needs a header row with an artist column (artist / Artist /
    Track Artist) and a title column (title / Title / Track Name / name).
    Tracks are researched one at a time, roughly a second apart.

    Args:
        csv_text:  Raw CSV text.
        file_name: Name used for the show.

    Returns:
        The new show's id, name, track count, failed tracks and a summary message.
    """
    try:
        records = parse_upload(csv_text)
    except CsvInputError as e:
        return {"error": str(e)}

    try:
        store.begin_research()
    except ResearchInProgressError as e:
        return {"error": str(e)}

    show = await prepare_show(store, pipeline, records, file_name)
    progress = store.progress
    return {
        "show_id": show.id,
        "name": show.name,
        "track_count": len(show.tracks),
        "failures": progress.failures,
        "message": progress.last_message,
    }


@mcp.tool()
async def list_shows() -> Dict[str, Any]:
    """List prepared shows, newest first, with track and played counts."""
    active = store.get_active_show()
    return {
        "active_show_id": active.id if active else None,
        "shows": [s.to_wire() for s in store.summaries()],
    }


@mcp.tool()
async def find_tracks(
    show_id: Optional[str] = None,
    search: str = "",
    genre: str = "",
    decade: str = "",
    region: str = "",
    played: str = "all",
) -> Dict[str, Any]:
    """
    Filter a show's tracks like the dashboard does.

    Args:
        show_id: Show to search; defaults to the active show.
        search:  Substring of artist, title or genre (case-insensitive).
        genre:   Substring of genre.
        decade:  Decade such as "1960".
        region:  Substring of region.
        played:  "all", "played" or "unplayed".

    Returns:
        Matching tracks in playlist order with their talking points.
    """
    try:
        show = store.get_show(show_id) if show_id else store.get_active_show()
    except UnknownShowError:
        return {"error": f"Show not found: {show_id}"}
    if show is None:
        return {"error": "No shows yet. Use prep_playlist first."}

    try:
        played_filter = PlayedFilter(played)
    except ValueError:
        return {"error": f"played must be one of: {', '.join(p.value for p in PlayedFilter)}"}

    filters = TrackFilters(genre=genre, decade=decade, region=region, played=played_filter)
    tracks = filter_tracks(show.tracks, search, filters, store.played_checker(show.id))
    return {
        "show_id": show.id,
        "count": len(tracks),
        "tracks": [
            {
                "id": t.id,
                "artist": t.artist,
                "title": t.title,
                "release_year": t.release_year,
                "genre": t.genre,
                "region": t.region,
                "played": store.is_played(show.id, t.id),
                "talking_points": [p.text for p in t.talking_points],
            }
            for t in tracks
        ],
    }


@mcp.tool()
async def mark_track_played(track_id: str, show_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Mark a track as played. Marking it again keeps the original time.

    Args:
        track_id: Track id from find_tracks.
        show_id:  Show id; defaults to the active show.
    """
    try:
        entry = store.mark_played(track_id, show_id=show_id)
    except UnknownShowError:
        return {"error": f"Show not found: {show_id or 'no active show'}"}
    except UnknownTrackError:
        return {"error": f"Track not found: {track_id}"}
    return {"track_id": track_id, **entry.to_wire()}


@mcp.tool()
async def export_shows() -> Dict[str, Any]:
    """
    Save every show and the play state as a JSON file in the export directory.

    Returns:
        The written file path and how many shows / played tracks it holds.
    """
    path = write_export(store, settings.export_dir, prefix=settings.export_prefix)
    logger.info(f"Exported shows to {path}")
    snapshot = store.snapshot()
    return {
        "path": str(path),
        "shows": len(snapshot["shows"]),
        "played_tracks": len(snapshot["playedTracks"]),
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    """Run the MCP server."""
    import argparse

    def handle_shutdown(sig, frame):
        logger.info("Shutting down MCP server...")
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    parser = argparse.ArgumentParser()
    parser.add_argument("--transport", default="stdio", choices=["stdio", "sse"])
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    logger.info("Starting Radio Show Prep MCP Server...")

    if args.transport == "sse":
        mcp.run(transport="sse", host=args.host, port=args.port)
    else:
        mcp.run()


if __name__ == "__main__":
    main()
