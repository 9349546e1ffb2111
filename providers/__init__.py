"""
Lyrics Search Providers Package
This package contains providers that find a song from a fragment of its lyrics.
"""

from .base import LyricsProvider
from .genius import GeniusProvider

__all__ = [
    'LyricsProvider',
    'GeniusProvider',
]
