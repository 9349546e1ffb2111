"""Tests for the Genius lyrics search provider"""
from unittest.mock import Mock

import pytest
import requests

from audio_recognition.errors import LyricsSearchFailed
from audio_recognition.models import RecognitionSource
from providers import GeniusProvider, LyricsProvider

HITS = {
    "meta": {"status": 200},
    "response": {
        "hits": [
            {
                "type": "song",
                "result": {
                    "id": 378195,
                    "title": "Diễm Xưa",
                    "full_title": "Diễm Xưa by Trịnh Công Sơn",
                    "url": "https://genius.com/Trinh-cong-son-diem-xua-lyrics",
                    "song_art_image_url": "https://images.genius.com/diem-xua.jpg",
                    "primary_artist": {"name": "Trịnh Công Sơn"},
                },
            },
            {
                "type": "song",
                "result": {"id": 1, "title": "Second", "primary_artist": {"name": "Nobody"}},
            },
        ]
    },
}


def response(payload, ok=True, status_code=200):
    mock = Mock(ok=ok, status_code=status_code)
    mock.json.return_value = payload
    return mock


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def provider(session):
    return GeniusProvider("genius-test-token", session=session)


def test_is_lyrics_provider(provider):
    assert isinstance(provider, LyricsProvider)
    assert str(provider) == "genius Provider"


def test_search_returns_first_hit(provider, session):
    session.get.return_value = response(HITS)

    result = provider.search("mưa vẫn mưa bay trên tầng tháp cổ")

    assert result.title == "Diễm Xưa"
    assert result.artist == "Trịnh Công Sơn"
    assert result.full_title == "Diễm Xưa by Trịnh Công Sơn"
    assert result.song_url == "https://genius.com/Trinh-cong-son-diem-xua-lyrics"
    assert result.image_url == "https://images.genius.com/diem-xua.jpg"
    assert result.song_id == 378195
    assert result.source == RecognitionSource.LYRICS

    call = session.get.call_args
    assert call.args[0] == "https://api.genius.com/search"
    assert call.kwargs["params"] == {"q": "mưa vẫn mưa bay trên tầng tháp cổ"}
    assert call.kwargs["headers"]["Authorization"] == "Bearer genius-test-token"


def test_missing_artist(provider, session):
    session.get.return_value = response({"response": {"hits": [{"result": {"title": "Untitled"}}]}})
    assert provider.search("some lyrics here").artist == "Unknown artist"


def test_no_hits(provider, session):
    session.get.return_value = response({"response": {"hits": []}})
    assert provider.search("nothing matches this") is None


def test_http_error(provider, session):
    session.get.return_value = response({"meta": {"status": 401}}, ok=False, status_code=401)
    with pytest.raises(LyricsSearchFailed) as excinfo:
        provider.search("any lyrics")
    assert excinfo.value.message == "Search failed"


def test_network_error(provider, session):
    session.get.side_effect = requests.exceptions.ConnectionError("offline")
    with pytest.raises(LyricsSearchFailed):
        provider.search("any lyrics")


def test_invalid_json(provider, session):
    bad = response(None)
    bad.json.side_effect = ValueError("Expecting value")
    session.get.return_value = bad
    with pytest.raises(LyricsSearchFailed):
        provider.search("any lyrics")


def test_hit_without_song(provider, session):
    session.get.return_value = response({"response": {"hits": [{"type": "song"}]}})
    assert provider.search("some lyrics here") is None
