"""Genius Provider for lyrics search"""

from typing import Optional

import requests

from audio_recognition.errors import LyricsSearchFailed
from audio_recognition.models import RecognitionResult, RecognitionSource
from logging_config import get_logger
from .base import LyricsProvider

logger = get_logger(__name__)


class GeniusProvider(LyricsProvider):
    BASE_URL = "https://api.genius.com"

    def __init__(self, access_token: str, session: Optional[requests.Session] = None):
        """Initialize Genius provider with config settings"""
        super().__init__(provider_name="genius", session=session)
        self.base_url = self.base_url or self.BASE_URL
        self._access_token = (access_token or "").strip()

    def search(self, query: str) -> Optional[RecognitionResult]:
        """
        Search Genius for a lyrics fragment and return the top hit.

        Args:
            query (str): Lyrics fragment
        """
        try:
            response = self.session.get(
                f"{self.base_url}/search",
                params={"q": query},
                headers={"Authorization": f"Bearer {self._access_token}"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Genius - Search request failed: {e}")
            raise LyricsSearchFailed() from e

        if not response.ok:
            logger.warning(f"Genius - Search returned status {response.status_code}")
            raise LyricsSearchFailed()

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Genius - Invalid JSON in search response: {e}")
            raise LyricsSearchFailed() from e

        hits = (data.get("response") or {}).get("hits") or []
        if not hits:
            logger.info(f"Genius - No hits for: {query}")
            return None

        song = hits[0].get("result") or {}
        if not song:
            logger.info(f"Genius - First hit has no song for: {query}")
            return None

        result = RecognitionResult(
            title=song.get("title", ""),
            artist=(song.get("primary_artist") or {}).get("name") or "Unknown artist",
            full_title=song.get("full_title", ""),
            song_url=song.get("url", ""),
            source=RecognitionSource.LYRICS,
            image_url=song.get("song_art_image_url"),
            song_id=song.get("id"),
        )
        logger.info(f"Genius - Found {result.artist} - {result.title} for: {query}")
        return result
