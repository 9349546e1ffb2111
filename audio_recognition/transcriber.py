"""
Transcription Module

Speech-to-text via AssemblyAI: upload the chunk, request a transcript, then
poll its status on a fixed schedule until it completes, errors or times out.
"""

import asyncio
from typing import Optional

import requests

from config import get_provider_config
from logging_config import get_logger
from .capture import AudioChunk
from .errors import TranscriptionRequestFailed, TranscriptionTimeout

logger = get_logger(__name__)


class AssemblyAITranscriber:
    """
    AssemblyAI transcription client.

    HTTP calls are blocking (requests) and run via asyncio.to_thread so only
    the recognition task for the chunk waits on them, never the capture loop.
    """

    def __init__(
        self,
        api_key: str,
        poll_interval: Optional[float] = None,
        poll_attempts: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        config = get_provider_config("assemblyai")
        self._api_key = (api_key or "").strip()
        self._base_url = config.get("base_url", "https://api.assemblyai.com/v2")
        self._timeout = config.get("timeout", 30)
        self.poll_interval = config.get("poll_interval", 1.5) if poll_interval is None else poll_interval
        self.poll_attempts = config.get("poll_attempts", 30) if poll_attempts is None else poll_attempts
        self._session = session or requests.Session()

    @property
    def _headers(self) -> dict:
        return {"authorization": self._api_key}

    async def transcribe(self, audio: AudioChunk, language_code: str) -> str:
        """
        Transcribe an audio chunk.

        Args:
            audio: Finalized AudioChunk
            language_code: AssemblyAI language code (e.g. "vi", "en")

        Returns:
            Transcript text (may be empty if nothing was said)

        Raises:
            TranscriptionRequestFailed: Upload/request failure or remote-reported error
            TranscriptionTimeout: Transcript not ready after poll_attempts polls
        """
        upload_url = await asyncio.to_thread(self._upload, audio.to_wav_bytes())
        transcript_id = await asyncio.to_thread(self._request_transcript, upload_url, language_code)
        logger.debug(f"Transcript {transcript_id} queued ({language_code})")

        for attempt in range(self.poll_attempts):
            await asyncio.sleep(self.poll_interval)
            data = await asyncio.to_thread(self._get_status, transcript_id)
            status = data.get("status")

            if status == "completed":
                text = data.get("text") or ""
                logger.info(f"Transcript {transcript_id} completed after {attempt + 1} polls ({len(text)} chars)")
                return text

            if status == "error":
                message = data.get("error") or "Transcription failed"
                logger.error(f"Transcript {transcript_id} failed: {message}")
                raise TranscriptionRequestFailed(message)

        logger.warning(f"Transcript {transcript_id} not ready after {self.poll_attempts} polls")
        raise TranscriptionTimeout()

    def _upload(self, wav_bytes: bytes) -> str:
        try:
            response = self._session.post(
                f"{self._base_url}/upload",
                headers=self._headers,
                data=wav_bytes,
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"AssemblyAI upload failed: {e}")
            raise TranscriptionRequestFailed(f"Upload failed: {e}") from e

        if not response.ok:
            raise TranscriptionRequestFailed(f"Upload failed ({response.status_code}): {response.text}")

        try:
            return response.json()["upload_url"]
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"AssemblyAI upload returned an unexpected body: {e}")
            raise TranscriptionRequestFailed("Upload failed: unexpected response") from e

    def _request_transcript(self, audio_url: str, language_code: str) -> str:
        try:
            response = self._session.post(
                f"{self._base_url}/transcript",
                headers={**self._headers, "content-type": "application/json"},
                json={"audio_url": audio_url, "language_code": language_code},
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"AssemblyAI transcript request failed: {e}")
            raise TranscriptionRequestFailed() from e

        if not response.ok:
            raise TranscriptionRequestFailed()

        try:
            return response.json()["id"]
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"AssemblyAI transcript request returned an unexpected body: {e}")
            raise TranscriptionRequestFailed() from e

    def _get_status(self, transcript_id: str) -> dict:
        try:
            response = self._session.get(
                f"{self._base_url}/transcript/{transcript_id}",
                headers=self._headers,
                timeout=self._timeout,
            )
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"AssemblyAI status poll failed: {e}")
            raise TranscriptionRequestFailed(f"Transcript status check failed: {e}") from e

        if not response.ok or not isinstance(data, dict):
            logger.error(f"AssemblyAI status poll returned HTTP {response.status_code}")
            raise TranscriptionRequestFailed(f"Transcript status check failed ({response.status_code})")
        return data

    def close(self) -> None:
        self._session.close()
