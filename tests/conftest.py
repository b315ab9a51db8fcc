"""Shared fixtures: a fake Anthropic client and sample tracks."""

import json
from types import SimpleNamespace

import pytest

from radio_prep.config import Settings
from radio_prep.models import Source, TalkingPoint, Track
from radio_prep.research import ResearchClient

VALID_RESEARCH = {
    "releaseYear": "1959",
    "genre": "Jazz",
    "subGenre": "Modal jazz",
    "region": "United States",
    "culturalContext": "Recorded for Kind of Blue at Columbia's 30th Street Studio.",
    "musicalFacts": "Built on two Dorian modes with a call-and-response head.",
    "globalConnections": "Modal approach fed into Indian-influenced jazz of the 1960s.",
    "talkingPoints": [
        {"text": "Opening track of the best-selling jazz album ever.", "sources": [1]},
        {"text": "Bill Evans co-wrote the liner notes.", "sources": [1, 2]},
        {"text": "Only two chords for the whole tune.", "sources": [2]},
    ],
    "sources": [
        {"id": 1, "url": "https://www.allmusic.com", "title": "AllMusic", "type": "music database"},
        {"id": 2, "url": "https://www.discogs.com", "title": "Discogs", "type": "music database"},
    ],
}


class FakeMessages:
    def __init__(self, replies):
        self._replies = list(replies)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=reply)])


class FakeAnthropic:
    """Stands in for anthropic.AsyncAnthropic; replies are returned in order."""

    def __init__(self, *replies):
        self.messages = FakeMessages(replies or [json.dumps(VALID_RESEARCH)])


@pytest.fixture
def configured_settings():
    return Settings(api_key="test-key", research_delay=0)


@pytest.fixture
def unconfigured_settings():
    return Settings(api_key="", research_delay=0)


@pytest.fixture
def fake_client():
    return FakeAnthropic()


@pytest.fixture
def research_client(configured_settings, fake_client):
    return ResearchClient(configured_settings, client=fake_client)


def make_track(track_id, artist="Artist", title="Title", genre="Rock",
               region="United Kingdom", release_year="1968"):
    return Track(
        id=track_id,
        artist=artist,
        title=title,
        genre=genre,
        region=region,
        release_year=release_year,
        talking_points=[TalkingPoint(text="fact", sources=[1])],
        sources=[Source(id=1, url="https://example.org", title="Example", type="web")],
    )


@pytest.fixture
def sample_tracks():
    return [
        make_track("t1", "Miles Davis", "So What", "Jazz", "United States", "1959"),
        make_track("t2", "The Beatles", "Hey Jude", "Rock", "United Kingdom", "1968"),
        make_track("t3", "Fela Kuti", "Zombie", "Afrobeat", "Nigeria", "1976"),
        make_track("t4", "Os Mutantes", "Panis et Circenses", "Tropicália", "Brazil", "1968"),
        make_track("t5", "Unknown Act", "Demo", "Unknown", "Unknown", "Unknown"),
    ]
