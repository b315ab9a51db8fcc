"""Tests for the HTTP API (research runs without a key, no network)."""

from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

import radio_prep.app as app_module
from radio_prep.config import Settings
from radio_prep.pipeline import EnrichmentPipeline
from radio_prep.research import NOT_CONFIGURED, ResearchClient
from radio_prep.store import ShowStore

PLAYLIST = "artist,title\nMiles Davis,So What\nThe Beatles,Hey Jude\n"


@pytest.fixture
def store(monkeypatch):
    store = ShowStore()
    research = ResearchClient(Settings(api_key="", research_delay=0))
    monkeypatch.setattr(app_module, "store", store)
    monkeypatch.setattr(app_module, "research_client", research)
    monkeypatch.setattr(app_module, "pipeline", EnrichmentPipeline(research))
    return store


@pytest.fixture
def client(store):
    return TestClient(app_module.app)


def _upload(client, text=PLAYLIST, name="friday.csv"):
    return client.post("/api/shows/upload", files={"file": (name, text.encode("utf-8"), "text/csv")})


def _played_url(show_id, track_id):
    return f"/api/shows/{show_id}/tracks/{quote(track_id, safe='')}/played"


class TestUpload:
    def test_upload_creates_active_show(self, client, store) -> None:
        response = _upload(client)

        assert response.status_code == 202
        assert response.json()["records"] == 2

        progress = client.get("/api/research/progress").json()
        assert progress["busy"] is False
        assert progress["lastMessage"] == "Upload complete! Successfully researched 2 tracks."

        show = client.get("/api/shows/active").json()
        assert show["fileName"] == "friday.csv"
        assert [t["artist"] for t in show["tracks"]] == ["Miles Davis", "The Beatles"]
        for track in show["tracks"]:
            assert track["culturalContext"] == NOT_CONFIGURED
            assert len(track["talkingPoints"]) == 3
            assert track["sources"] == []

    def test_empty_csv_rejected(self, client, store) -> None:
        response = _upload(client, text="artist,title\n")

        assert response.status_code == 400
        assert store.list_shows() == []
        assert not store.busy

    def test_no_resolvable_tracks_rejected(self, client, store) -> None:
        response = _upload(client, text="performer,song\nMiles Davis,So What\n")

        assert response.status_code == 400
        assert "artist and title" in response.json()["detail"]

    def test_upload_with_very_long_field(self, client, store) -> None:
        notes = "x" * 200_000
        response = _upload(client, text=f"artist,title,notes\nMiles Davis,So What,{notes}\n")

        assert response.status_code == 202
        show = store.get_active_show()
        assert [t.title for t in show.tracks] == ["So What"]
        assert show.tracks[0].original_data["notes"] == notes

    def test_upload_with_unbalanced_quote_keeps_later_rows(self, client, store) -> None:
        text = 'artist,title\n"Miles Davis,So What\nThe Beatles,Hey Jude\n'

        response = _upload(client, text=text)

        assert response.status_code == 202
        assert [t.artist for t in store.get_active_show().tracks] == ["Miles Davis", "The Beatles"]

    def test_second_upload_while_busy(self, client, store) -> None:
        store.begin_research()

        response = _upload(client)

        assert response.status_code == 409
        assert store.list_shows() == []


class TestShows:
    def test_no_active_show(self, client) -> None:
        assert client.get("/api/shows/active").status_code == 404
        assert client.get("/api/shows").json() == []

    def test_show_list_and_activation(self, client, store) -> None:
        _upload(client, name="first.csv")
        _upload(client, name="second.csv")

        shows = client.get("/api/shows").json()
        assert [s["fileName"] for s in shows] == ["second.csv", "first.csv"]
        assert shows[0]["trackCount"] == 2

        response = client.post(f"/api/shows/{shows[1]['id']}/activate")
        assert response.status_code == 200
        assert client.get("/api/shows/active").json()["fileName"] == "first.csv"

        assert client.post("/api/shows/nope/activate").status_code == 404

    def test_mark_played_and_filter(self, client, store) -> None:
        _upload(client)
        show = store.get_active_show()
        first, second = show.tracks

        response = client.post(_played_url(show.id, first.id))
        assert response.status_code == 200
        assert response.json()["played"] is True

        played = client.get(f"/api/shows/{show.id}/tracks", params={"played": "played"}).json()
        unplayed = client.get(f"/api/shows/{show.id}/tracks", params={"played": "unplayed"}).json()

        assert [t["id"] for t in played["tracks"]] == [first.id]
        assert played["tracks"][0]["playedAt"] is not None
        assert [t["id"] for t in unplayed["tracks"]] == [second.id]
        assert unplayed["total"] == 2

    def test_mark_played_twice_keeps_timestamp(self, client, store) -> None:
        _upload(client)
        show = store.get_active_show()
        track_id = show.tracks[0].id

        first = client.post(_played_url(show.id, track_id)).json()
        again = client.post(_played_url(show.id, track_id)).json()

        assert first["timestamp"] == again["timestamp"]

    def test_mark_played_unknown(self, client, store) -> None:
        _upload(client)
        show = store.get_active_show()

        assert client.post(_played_url(show.id, "missing")).status_code == 404
        assert client.post(_played_url("missing", show.tracks[0].id)).status_code == 404

    def test_search_and_invalid_played_value(self, client, store) -> None:
        _upload(client)
        show = store.get_active_show()

        result = client.get(f"/api/shows/{show.id}/tracks", params={"search": "jude"}).json()
        assert [t["title"] for t in result["tracks"]] == ["Hey Jude"]

        bad = client.get(f"/api/shows/{show.id}/tracks", params={"played": "sometimes"})
        assert bad.status_code == 422

    def test_filter_options_and_stats(self, client, store) -> None:
        _upload(client)
        show = store.get_active_show()
        client.post(_played_url(show.id, show.tracks[1].id))

        options = client.get(f"/api/shows/{show.id}/filter-options").json()
        stats = client.get(f"/api/shows/{show.id}/stats").json()

        assert options["genres"] == [NOT_CONFIGURED]
        assert options["decades"] == []
        assert stats == {"total": 2, "played": 1, "regions": 1, "decades": 0}


class TestExport:
    def test_export_download(self, client, store) -> None:
        _upload(client)
        show = store.get_active_show()
        client.post(_played_url(show.id, show.tracks[0].id))

        response = client.get("/api/export")

        assert response.status_code == 200
        assert "attachment" in response.headers["content-disposition"]
        assert "kxlu-radio-data-" in response.headers["content-disposition"]
        document = response.json()
        assert len(document["shows"]) == 1
        assert len(document["shows"][0]["tracks"]) == 2
        assert len(document["playedTracks"]) == 1
        assert "exportDate" in document


def test_health(client) -> None:
    assert client.get("/api/health").json() == {"status": "ok", "researchConfigured": False}
