"""
AudD Recognition Module

Acoustic fingerprint matching via the AudD API.
Every failure degrades to "no match": fingerprinting is a best-effort signal.
"""

import asyncio
import time
from typing import Optional

import requests

from config import get_provider_config, MIN_CREDENTIAL_LENGTH
from logging_config import get_logger
from .capture import AudioChunk
from .models import RecognitionResult, RecognitionSource

logger = get_logger(__name__)


class AudDRecognizer:
    """
    AudD audio fingerprint matcher.

    Features:
    - Auto-disabled if the API token is missing or too short
    - Never raises: transport errors, HTTP errors and no-match all return None
    - Returns Spotify/Apple Music artwork and preview links when AudD has them
    """

    def __init__(self, api_token: str, session: Optional[requests.Session] = None):
        config = get_provider_config("audd")
        self._api_token = (api_token or "").strip()
        self._url = config.get("base_url", "https://api.audd.io/")
        self._timeout = config.get("timeout", 30)
        self._return = config.get("return", "spotify,apple_music")
        self._session = session or requests.Session()

        if self.is_available():
            logger.info("AudD fingerprint matching enabled")
        else:
            logger.debug("AudD not configured (missing API token)")

    def is_available(self) -> bool:
        """Check if AudD is configured."""
        return len(self._api_token) >= MIN_CREDENTIAL_LENGTH

    async def recognize(self, audio: AudioChunk) -> Optional[RecognitionResult]:
        """
        Identify the song in an audio chunk.

        Args:
            audio: Finalized AudioChunk

        Returns:
            RecognitionResult or None if no match/error
        """
        if not self.is_available():
            return None
        if audio.is_empty:
            logger.debug("AudD skipped: empty chunk")
            return None
        return await asyncio.to_thread(self._recognize_sync, audio.to_wav_bytes())

    def _recognize_sync(self, wav_bytes: bytes) -> Optional[RecognitionResult]:
        try:
            logger.debug(f"Sending to AudD ({len(wav_bytes) / 1024:.1f} KB)...")
            started = time.time()
            response = self._session.post(
                self._url,
                data={'api_token': self._api_token, 'return': self._return},
                files={'file': ('recording.wav', wav_bytes, 'audio/wav')},
                timeout=self._timeout,
            )
            if not response.ok:
                logger.debug(f"AudD returned HTTP {response.status_code}")
                return None

            data = response.json()
        except requests.exceptions.Timeout:
            logger.warning("AudD request timed out")
            return None
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"AudD recognition failed: {e}")
            return None

        result = self.parse_response(data)
        if result:
            logger.info(f"AudD recognized: {result.artist} - {result.title} ({time.time() - started:.1f}s)")
        return result

    @staticmethod
    def parse_response(data: dict) -> Optional[RecognitionResult]:
        """Map an AudD JSON response to a RecognitionResult (None if no match)."""
        if not isinstance(data, dict) or data.get('status') != 'success' or not data.get('result'):
            logger.debug(f"AudD no match: {data.get('error', {}) if isinstance(data, dict) else data}")
            return None

        track = data['result']
        spotify = track.get('spotify') or {}
        apple_music = track.get('apple_music') or {}

        previews = apple_music.get('previews') or []
        preview_url = spotify.get('preview_url') or (previews[0].get('url') if previews else None)

        images = (spotify.get('album') or {}).get('images') or []
        image_url = images[0].get('url') if images else None

        title = track.get('title') or 'Unknown title'
        artist = track.get('artist') or 'Unknown artist'

        song_id = track.get('song_id')
        try:
            song_id = int(song_id) if song_id is not None else None
        except (TypeError, ValueError):
            song_id = None

        return RecognitionResult(
            title=title,
            artist=artist,
            full_title=f"{track.get('artist') or 'Unknown'} - {track.get('title') or 'Unknown'}",
            song_url=track.get('song_link') or '',
            source=RecognitionSource.FINGERPRINT,
            image_url=image_url,
            preview_url=preview_url,
            song_id=song_id,
        )

    def close(self) -> None:
        self._session.close()
