"""Tests for the recognition HTTP API"""
import pytest

import server
from audio_recognition.engine import RecognitionEngine
from audio_recognition.errors import TranscriptionTimeout
from conftest import FakeCapture, FakePipeline, make_result
from server import app, get_engine, set_engine
from settings import SettingsManager


@pytest.fixture
def pipeline():
    return FakePipeline(final_result=make_result("Served Song", "Served Artist"))


@pytest.fixture
def engine(pipeline, credentials):
    engine = RecognitionEngine(
        capture=FakeCapture(),
        pipeline=pipeline,
        credentials=credentials,
        language="vi",
        chunk_interval=3600,
    )
    set_engine(engine)
    yield engine
    set_engine(None)


@pytest.fixture
def client(engine):
    return app.test_client()


def test_engine_must_be_attached():
    set_engine(None)
    with pytest.raises(RuntimeError):
        get_engine()


async def test_health(client):
    response = await client.get('/api/health')
    assert response.status_code == 200
    assert (await response.get_json())["status"] == "ok"


async def test_status_when_idle(client):
    response = await client.get('/api/recognition/status')
    data = await response.get_json()

    assert response.status_code == 200
    assert data["state"] == "idle"
    assert data["best_result"] is None
    assert data["candidates"] == []
    assert response.headers["Cache-Control"].startswith("no-cache")


async def test_start_and_stop(client):
    response = await client.post('/api/recognition/start')
    assert response.status_code == 200
    assert (await response.get_json()) == {"status": "recording", "session_id": 1}

    response = await client.post('/api/recognition/stop')
    data = await response.get_json()
    assert response.status_code == 200
    assert data["result"]["title"] == "Served Song"
    assert data["best_result"]["artist"] == "Served Artist"

    response = await client.get('/api/recognition/status')
    data = await response.get_json()
    assert data["state"] == "idle"
    assert data["candidates"][0]["id"] == "Served Song-Served Artist"
    assert data["candidates"][0]["source"] == "fingerprint"

    response = await client.get('/api/recognition/history')
    history = (await response.get_json())["history"]
    assert len(history) == 1
    assert history[0]["result"]["title"] == "Served Song"


async def test_start_without_credentials(client, engine):
    engine._credentials = {}

    response = await client.post('/api/recognition/start')
    data = await response.get_json()

    assert response.status_code == 400
    assert data["error"] == "MISSING_CREDENTIALS"
    assert data["message"]


async def test_stop_failure(client, pipeline):
    pipeline.final_error = TranscriptionTimeout()
    await client.post('/api/recognition/start')

    response = await client.post('/api/recognition/stop')
    data = await response.get_json()

    assert response.status_code == 502
    assert data == {"error": "TRANSCRIPTION_TIMEOUT", "message": "Transcription timeout"}


async def test_stop_when_idle(client):
    response = await client.post('/api/recognition/stop')
    data = await response.get_json()
    assert response.status_code == 200
    assert data["result"] is None


async def test_clear(client, engine):
    engine.transcript = "something"
    response = await client.post('/api/recognition/clear')
    assert response.status_code == 200
    assert engine.transcript == ""


async def test_language(client, engine):
    response = await client.get('/api/recognition/language')
    data = await response.get_json()
    assert data["language"] == "vi"
    assert {"label": "Japanese", "value": "ja"} in data["options"]

    response = await client.post('/api/recognition/language', json={"language": "ja"})
    assert response.status_code == 200
    assert engine.language == "ja"

    response = await client.post('/api/recognition/language', json={"language": "klingon"})
    assert response.status_code == 400
    assert (await response.get_json())["error"] == "INVALID_LANGUAGE"
    assert engine.language == "ja"


@pytest.fixture
def temp_settings(tmp_path, monkeypatch):
    manager = SettingsManager(path=tmp_path / "settings.json")
    monkeypatch.setattr(server, "settings", manager)
    return manager


async def test_get_settings(client, temp_settings):
    response = await client.get('/api/settings')
    data = await response.get_json()

    assert response.status_code == 200
    assert data["Recognition"]["recognition.language"]["value"] == "vi"


async def test_update_single_setting(client, temp_settings, tmp_path):
    response = await client.post('/api/settings/recognition.language', json={"value": "ko"})
    data = await response.get_json()

    assert response.status_code == 200
    assert data == {"success": True, "requires_restart": False}
    assert SettingsManager(path=tmp_path / "settings.json").get("recognition.language") == "ko"


async def test_update_setting_errors(client, temp_settings):
    response = await client.post('/api/settings/recognition.language', json={})
    assert response.status_code == 400

    response = await client.post('/api/settings/recognition.unknown', json={"value": 1})
    assert response.status_code == 400


async def test_bulk_update_and_reset(client, temp_settings, tmp_path):
    response = await client.post('/api/settings', json={"server.port": 9200, "recognition.chunk_interval": 5})
    data = await response.get_json()

    assert data == {"success": True, "requires_restart": True}
    assert temp_settings.get("server.port") == 9200
    assert (tmp_path / "settings.json").exists()

    response = await client.post('/api/settings/reset')
    assert response.status_code == 200
    assert temp_settings.get("server.port") == 9014
    assert not (tmp_path / "settings.json").exists()
