"""
Recognition data models shared by the clients, the pipeline and the engine.
"""

import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any


class EngineState(Enum):
    """Engine state machine states."""
    IDLE = "idle"              # Not recording
    RECORDING = "recording"    # Capturing chunks, fingerprinting in background
    PROCESSING = "processing"  # Final pass running after stop
    ERROR = "error"            # Last final pass failed


class RecognitionSource(str, Enum):
    FINGERPRINT = "fingerprint"
    LYRICS = "lyrics"


@dataclass(frozen=True)
class RecognitionResult:
    """
    A candidate song identity produced by exactly one recognition client call.

    Attributes:
        title: Song title
        artist: Primary artist name
        full_title: Display title ("Artist - Title" or the service's own form)
        song_url: Link to the song on the source service
        source: Which signal produced it (fingerprint or lyrics)
        image_url: Artwork URL, if the service returned one
        preview_url: Short audio preview URL, if available
        song_id: Identifier on the source service
    """
    title: str
    artist: str
    full_title: str
    song_url: str
    source: RecognitionSource
    image_url: Optional[str] = None
    preview_url: Optional[str] = None
    song_id: Optional[int] = None

    @property
    def key(self) -> str:
        # Exact concatenation: "Song" by "A" and "song" by "a" are different identities
        return f"{self.title}-{self.artist}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["source"] = self.source.value
        return data

    def __str__(self) -> str:
        return f"{self.artist} - {self.title} [{self.source.value}]"


@dataclass(frozen=True)
class Candidate:
    """Aggregator entry for one distinct song identity."""
    key: str
    title: str
    artist: str
    source: RecognitionSource
    score: float
    result: RecognitionResult

    @classmethod
    def from_result(cls, result: RecognitionResult, score: float) -> "Candidate":
        return cls(
            key=result.key,
            title=result.title,
            artist=result.artist,
            source=result.source,
            score=score,
            result=result,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.key,
            "title": self.title,
            "artist": self.artist,
            "source": self.source.value,
            "score": round(self.score, 4),
            "result": self.result.to_dict(),
        }


@dataclass(frozen=True)
class HistoryEntry:
    """Record of one completed final pass, whether or not a song was found."""
    transcript: str
    cleaned: str
    result: Optional[RecognitionResult] = None
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "transcript": self.transcript,
            "cleaned": self.cleaned,
            "result": self.result.to_dict() if self.result else None,
            "created_at": self.created_at,
        }


@dataclass
class Session:
    """
    One continuous recording activity.

    Only the session whose id matches the engine's current id may schedule
    chunks or apply results; bumping the id cancels everything in flight.
    """
    id: int = 0
    stopping: bool = False
