"""Pytest configuration and shared fixtures"""
import asyncio
import time

import numpy as np
import pytest

from audio_recognition.capture import AudioChunk
from audio_recognition.models import HistoryEntry, RecognitionResult, RecognitionSource
from audio_recognition.pipeline import ChunkReport

VALID_CREDENTIALS = {
    "assemblyai_api_key": "assemblyai-test-key-0001",
    "genius_access_token": "genius-test-token-0001",
    "audd_api_token": "audd-test-token-0001",
}


def make_result(title="Song", artist="Artist", source=RecognitionSource.FINGERPRINT):
    return RecognitionResult(
        title=title,
        artist=artist,
        full_title=f"{artist} - {title}",
        song_url=f"https://example.com/{title}",
        source=source,
    )


def make_chunk(frames=800, sample_rate=8000, value=1000):
    data = np.full((frames, 1), value, dtype=np.int16)
    return AudioChunk(
        data=data,
        sample_rate=sample_rate,
        channels=1,
        duration=frames / float(sample_rate),
        capture_start_time=time.time(),
    )


def empty_chunk():
    return make_chunk(frames=0)


async def drain(iterations=20):
    """Let pending tasks and callbacks run."""
    for _ in range(iterations):
        await asyncio.sleep(0)


class FakeCapture:
    """Stands in for MicrophoneCapture without touching an audio device"""

    def __init__(self, final_chunk=None):
        self.is_recording = False
        self.final_chunk = final_chunk if final_chunk is not None else make_chunk()
        self.started = 0
        self.aborted = 0
        self.permission_error = None

    def request_permission(self):
        if self.permission_error:
            raise self.permission_error

    def start(self):
        self.started += 1
        self.is_recording = True

    def rotate(self):
        return make_chunk()

    def finish(self):
        self.is_recording = False
        return self.final_chunk

    def abort(self):
        self.aborted += 1
        self.is_recording = False


class FakePipeline:
    """
    ChunkPipeline stand-in.
    Chunk passes block on `release` so tests control when they complete.
    """

    def __init__(self, chunk_result=None, final_result=None, final_error=None, transcript="toi dang hat mot bai hat"):
        self.fingerprinter = None
        self.transcriber = None
        self.lyrics_provider = None
        self.chunk_result = chunk_result
        self.final_result = final_result
        self.final_error = final_error
        self.transcript = transcript
        self.release = asyncio.Event()
        self.calls = []

    async def process(self, chunk, session_id, final, language_code="vi"):
        self.calls.append((session_id, chunk.index, final, language_code))
        report = ChunkReport(session_id=session_id, chunk_index=chunk.index, final=final)

        if final:
            if self.final_error:
                raise self.final_error
            report.transcript = self.transcript
            report.cleaned = self.transcript
            report.result = self.final_result
            if self.final_result:
                report.observations.append((self.final_result, 0.92))
            report.history_entry = HistoryEntry(self.transcript, self.transcript, self.final_result)
            return report

        await self.release.wait()
        if self.chunk_result:
            report.result = self.chunk_result
            report.observations.append((self.chunk_result, 0.92))
        return report


@pytest.fixture
def credentials():
    return dict(VALID_CREDENTIALS)


@pytest.fixture
def chunk():
    return make_chunk()


@pytest.fixture
def capture():
    return FakeCapture()
