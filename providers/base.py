"""
Base Provider Class
All lyrics search providers must inherit from this base class.
"""

from abc import ABC, abstractmethod
from typing import Optional

import requests

from audio_recognition.models import RecognitionResult
from config import get_provider_config
from logging_config import get_logger

logger = get_logger(__name__)


class LyricsProvider(ABC):
    """Base class for all lyrics search providers."""

    def __init__(self, provider_name: str, session: Optional[requests.Session] = None):
        """
        Initialize the provider using configuration from config.py

        Args:
            provider_name (str): Name of the provider (must match config key)
            session: Optional requests session (tests inject a mock)
        """
        config = get_provider_config(provider_name.lower())

        self.name = provider_name
        self.base_url = config.get('base_url', '')
        self.timeout = config.get('timeout', 10)
        self.session = session or requests.Session()

        logger.info(f"Initialized {self.name} provider")

    @abstractmethod
    def search(self, query: str) -> Optional[RecognitionResult]:
        """
        Search for a song by a fragment of its lyrics.

        Args:
            query (str): Lyrics fragment

        Returns:
            Optional[RecognitionResult]: The best hit, or None when the search
            succeeded but returned no hits.

        Raises:
            LyricsSearchFailed: Transport or HTTP failure
        """
        pass

    def close(self) -> None:
        self.session.close()

    def __str__(self) -> str:
        """String representation of the provider"""
        return f"{self.name} Provider"

    def __repr__(self) -> str:
        """Detailed representation of the provider"""
        return f"<{self.__class__.__name__} name='{self.name}' base_url='{self.base_url}'>"
