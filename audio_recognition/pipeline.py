"""
Chunk Pipeline

Drives one finalized audio chunk through the recognition paths:
- Non-final (chunk boundary): fingerprint only, fast and cheap
- Final (recording stopped): fingerprint + transcription + lyrics search

The pipeline never touches shared state. It returns a ChunkReport and the
engine decides whether the report is still current before applying it.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional, List, Tuple

import lyrics
from logging_config import get_logger
from .capture import AudioChunk
from .errors import NoSpeechDetected, RecognitionError, TranscriptTooShort
from .models import HistoryEntry, RecognitionResult

logger = get_logger(__name__)

Observation = Tuple[RecognitionResult, float]


@dataclass
class ChunkReport:
    """Outcome of one pipeline pass."""
    session_id: int
    chunk_index: int
    final: bool
    observations: List[Observation] = field(default_factory=list)
    transcript: str = ""
    cleaned: str = ""
    result: Optional[RecognitionResult] = None
    history_entry: Optional[HistoryEntry] = None


class ChunkPipeline:
    """
    Recognition pipeline for a single chunk.

    Collaborators are injected so tests can substitute fakes:
        fingerprinter: async recognize(AudioChunk) -> Optional[RecognitionResult]
        transcriber:   async transcribe(AudioChunk, language_code) -> str
        lyrics_provider: search(query) -> Optional[RecognitionResult]
    """

    FINGERPRINT_CONFIDENCE = 0.92
    MIN_TRANSCRIPT_WORDS = 4

    def __init__(self, fingerprinter, transcriber, lyrics_provider):
        self.fingerprinter = fingerprinter
        self.transcriber = transcriber
        self.lyrics_provider = lyrics_provider

    async def _fingerprint(self, chunk: AudioChunk) -> Optional[RecognitionResult]:
        """Fingerprint lookup that can never fail the pass."""
        try:
            return await self.fingerprinter.recognize(chunk)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Fingerprint lookup failed for chunk {chunk.index}: {e}")
            return None

    def _fingerprint_observations(self, audio_result: Optional[RecognitionResult]) -> List[Observation]:
        return [(audio_result, self.FINGERPRINT_CONFIDENCE)] if audio_result else []

    async def process(self, chunk: AudioChunk, session_id: int, final: bool, language_code: str = "vi") -> ChunkReport:
        """
        Run one recognition pass.

        Raises (final passes only):
            NoSpeechDetected, TranscriptTooShort, TranscriptionRequestFailed,
            TranscriptionTimeout, LyricsSearchFailed
        """
        report = ChunkReport(session_id=session_id, chunk_index=chunk.index, final=final)

        if not final:
            audio_result = await self._fingerprint(chunk)
            report.result = audio_result
            report.observations = self._fingerprint_observations(audio_result)
            return report

        # Fingerprint runs alongside transcription; both are needed before deciding on lyrics search
        fingerprint_task = asyncio.create_task(self._fingerprint(chunk))
        try:
            transcript = await self.transcriber.transcribe(chunk, language_code)
        except RecognitionError as e:
            # A fingerprint hit is a complete answer even if transcription fails
            e.observations = self._fingerprint_observations(await fingerprint_task)
            raise
        except BaseException:
            fingerprint_task.cancel()
            raise
        audio_result = await fingerprint_task
        fingerprint_observations = self._fingerprint_observations(audio_result)

        try:
            if not transcript or not transcript.strip():
                raise NoSpeechDetected()

            cleaned = lyrics.normalize_lyrics(transcript)
            report.transcript = transcript
            report.cleaned = cleaned

            if lyrics.count_words(cleaned) < self.MIN_TRANSCRIPT_WORDS:
                raise TranscriptTooShort(transcript=transcript, cleaned=cleaned)
        except RecognitionError as e:
            e.observations = fingerprint_observations
            raise

        final_result = audio_result
        if audio_result:
            report.observations.extend(fingerprint_observations)
        else:
            final_result = await lyrics.search_song(self.lyrics_provider, cleaned)
            if final_result:
                report.observations.append((final_result, lyrics.estimate_lyrics_score(cleaned)))

        report.result = final_result
        report.history_entry = HistoryEntry(transcript=transcript, cleaned=cleaned, result=final_result)
        logger.info(f"Final pass for session {session_id}: {final_result or 'no match'}")
        return report
