"""
Claude-backed track research.

One prompt per track asks for a strict JSON document (release year, genre,
region, cultural context, three talking points with citations, source list).
``ResearchClient.research`` never raises: a missing API key, a transport error,
or a response that does not match the expected shape all produce a complete
placeholder ``ResearchResult`` with ``status == "unavailable"``.
"""

import json
import re
from typing import Any, List, Optional

from loguru import logger
from pydantic import ValidationError

from .config import Settings
from .models import ResearchResult, ResearchStatus, TalkingPoint

NOT_CONFIGURED = "API key not configured"
RESEARCH_PENDING = "Research pending"
UNKNOWN = "Unknown"

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Placeholder results
# ---------------------------------------------------------------------------

def not_configured_result() -> ResearchResult:
    """Result returned when no API key is set."""
    return ResearchResult(
        release_year=NOT_CONFIGURED,
        genre=NOT_CONFIGURED,
        sub_genre=NOT_CONFIGURED,
        region=NOT_CONFIGURED,
        cultural_context=NOT_CONFIGURED,
        musical_facts=NOT_CONFIGURED,
        global_connections=NOT_CONFIGURED,
        talking_points=[
            TalkingPoint(text="Set ANTHROPIC_API_KEY to enable automatic track research"),
            TalkingPoint(text="Restart the server after adding the key"),
            TalkingPoint(text="Re-upload the playlist to research these tracks"),
        ],
        sources=[],
        status=ResearchStatus.UNAVAILABLE,
    )


def fallback_result(artist: str, title: str) -> ResearchResult:
    """Result returned when the provider call or response parsing fails."""
    return ResearchResult(
        release_year=UNKNOWN,
        genre=UNKNOWN,
        sub_genre=UNKNOWN,
        region=UNKNOWN,
        cultural_context=RESEARCH_PENDING,
        musical_facts=RESEARCH_PENDING,
        global_connections=RESEARCH_PENDING,
        talking_points=[
            TalkingPoint(text=f"{title} by {artist}"),
            TalkingPoint(text="Track details to be researched"),
            TalkingPoint(text="Additional context coming soon"),
        ],
        sources=[],
        status=ResearchStatus.UNAVAILABLE,
    )


# ---------------------------------------------------------------------------
# Prompt + response handling
# ---------------------------------------------------------------------------

def build_prompt(artist: str, title: str) -> str:
    return f"""Research the song "{title}" by {artist} for a college radio DJ preparing a live show.
Cite reputable music sources (AllMusic, Discogs, Rolling Stone, encyclopedias, music magazines).

Provide information in this exact JSON format:

{{
  "releaseYear": "YYYY",
  "genre": "primary genre",
  "subGenre": "specific subgenre",
  "region": "country/region of origin",
  "culturalContext": "brief cultural background",
  "musicalFacts": "interesting musical or production details",
  "globalConnections": "connections to cross-cultural fusion or global music trends",
  "talkingPoints": [
    {{"text": "concise radio-ready fact 1", "sources": [1]}},
    {{"text": "concise radio-ready fact 2", "sources": [1, 2]}},
    {{"text": "concise radio-ready fact 3", "sources": [2]}}
  ],
  "sources": [
    {{"id": 1, "url": "source URL", "title": "source title", "type": "source type"}},
    {{"id": 2, "url": "source URL", "title": "source title", "type": "source type"}}
  ]
}}

Give exactly 3 talking points, each under 25 words. Reference sources by their id.
Make them engaging for radio. Your entire response MUST be valid JSON only."""


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences (```json ... ```) wrapping a response."""
    return _FENCE_RE.sub("", text).strip()


def parse_research(text: str) -> ResearchResult:
    """
    Parse provider text into a ResearchResult.

    Raises:
        ValueError: empty text, invalid JSON, or a document of the wrong shape
            (``pydantic.ValidationError`` is a ValueError).
    """
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise ValueError("empty research response")
    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    # status is ours, never the provider's
    data.pop("status", None)
    return ResearchResult.model_validate(data)


def _response_text(response: Any) -> str:
    parts: List[str] = []
    for block in getattr(response, "content", None) or []:
        if getattr(block, "type", None) == "text":
            parts.append(block.text)
    return "".join(parts)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ResearchClient:
    """
    Researches one track at a time through the Anthropic Messages API.

    ``client`` may be any object exposing an async ``messages.create``; it
    defaults to a lazily created ``anthropic.AsyncAnthropic``.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Any = None):
        self.settings = settings or Settings.from_env()
        self._client = client
        self._warned_unconfigured = False

    @property
    def configured(self) -> bool:
        return self.settings.research_configured

    def _get_client(self):
        """Lazy-init the Anthropic client."""
        if self._client is None:
            import anthropic

            kwargs = {"api_key": self.settings.api_key}
            if self.settings.timeout is not None:
                kwargs["timeout"] = self.settings.timeout
            self._client = anthropic.AsyncAnthropic(**kwargs)
        return self._client

    async def research(self, artist: str, title: str) -> ResearchResult:
        """Research one track. Always returns a complete result."""
        if not self.configured:
            if not self._warned_unconfigured:
                logger.warning("No ANTHROPIC_API_KEY set. Tracks get placeholder research.")
                self._warned_unconfigured = True
            return not_configured_result()

        try:
            client = self._get_client()
            response = await client.messages.create(
                model=self.settings.model,
                max_tokens=self.settings.max_tokens,
                messages=[{"role": "user", "content": build_prompt(artist, title)}],
            )
            result = parse_research(_response_text(response))
        except (ValueError, ValidationError) as e:
            logger.error(f"Unparseable research response for {artist} - {title}: {e}")
            return fallback_result(artist, title)
        except Exception as e:
            logger.error(f"Research failed for {artist} - {title}: {e}")
            return fallback_result(artist, title)

        logger.debug(
            f"Researched {artist} - {title}: {result.genre} / {result.release_year} "
            f"({len(result.sources)} sources)"
        )
        return result
