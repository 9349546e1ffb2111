"""
Recognition error taxonomy.

Every failure that can end a recording or a final recognition pass is a
RecognitionError subclass carrying a stable ``code`` and a user-facing
``message``. Fingerprint lookups never raise these; they degrade to no match.
"""

from typing import Any, List, Optional, Tuple


class RecognitionError(Exception):
    """Base class for errors surfaced to the user."""

    code = "RECOGNITION_ERROR"
    default_message = "Processing failed. Please try again."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        # (result, confidence) pairs produced before the failure, e.g. a fingerprint hit
        self.observations: List[Tuple[Any, float]] = []
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class MissingCredentials(RecognitionError):
    code = "MISSING_CREDENTIALS"
    default_message = "Please add AssemblyAI, Genius, and AudD keys to your environment."


class PermissionDenied(RecognitionError):
    code = "PERMISSION_DENIED"
    default_message = "Microphone permission is required."


class NoAudioCaptured(RecognitionError):
    code = "NO_AUDIO_CAPTURED"
    default_message = "No audio recorded."


class NoSpeechDetected(RecognitionError):
    code = "NO_SPEECH_DETECTED"
    default_message = "No speech detected. Please speak clearly and try again."


class TranscriptTooShort(RecognitionError):
    code = "TRANSCRIPT_TOO_SHORT"
    default_message = "Transcript too short. Sing the lyrics clearly and reduce background music."

    def __init__(self, message: Optional[str] = None, transcript: str = "", cleaned: str = ""):
        super().__init__(message)
        self.transcript = transcript
        self.cleaned = cleaned


class TranscriptionRequestFailed(RecognitionError):
    code = "TRANSCRIPTION_REQUEST_FAILED"
    default_message = "Transcript request failed"


class TranscriptionTimeout(RecognitionError):
    code = "TRANSCRIPTION_TIMEOUT"
    default_message = "Transcription timeout"


class LyricsSearchFailed(RecognitionError):
    code = "LYRICS_SEARCH_FAILED"
    default_message = "Search failed"


class RecordingStartFailed(RecognitionError):
    code = "RECORDING_START_FAILED"
    default_message = "Cannot start recording. Please try again."


class RecordingStopFailed(RecognitionError):
    code = "RECORDING_STOP_FAILED"
    default_message = "Cannot stop recording. Please try again."
