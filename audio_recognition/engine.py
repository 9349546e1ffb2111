"""
Recognition Engine Module

Owns the recording session: chunk scheduling, dispatch of recognition passes
and application of their results.
Features:
- Continuous capture split into fixed-length chunks with no recording gap
- Fingerprint-only pass per chunk while recording, full pass on stop
- Session-id tagging: results from a stopped or restarted session are ignored
- Single-writer apply loop so chunk results reach the aggregator in order
"""

import asyncio
from typing import Optional, Callable, Dict, Any, List

from config import has_credentials, LANGUAGE_CODES, RECOGNITION, CREDENTIALS
from logging_config import get_logger
from .aggregator import CandidateAggregator
from .capture import AudioChunk
from .errors import (
    MissingCredentials,
    NoAudioCaptured,
    RecognitionError,
    TranscriptTooShort,
)
from .models import EngineState, HistoryEntry, RecognitionResult, Session
from .pipeline import ChunkPipeline, ChunkReport

logger = get_logger(__name__)


class RecognitionEngine:
    """
    Session controller for live song recognition.

    The session id is the only cancellation mechanism: stop() and restarts bump
    it, and every chunk pass is tagged with the id it was dispatched under.
    A pass whose id no longer matches when it completes is discarded.
    """

    DEFAULT_CHUNK_INTERVAL = 8.0  # Seconds per chunk

    def __init__(
        self,
        capture,
        pipeline: ChunkPipeline,
        credentials: Optional[Dict[str, str]] = None,
        language: Optional[str] = None,
        chunk_interval: Optional[float] = None,
        aggregator: Optional[CandidateAggregator] = None,
        on_state_change: Optional[Callable[[EngineState], None]] = None,
    ):
        """
        Initialize the recognition engine.

        Args:
            capture: MicrophoneCapture (or compatible) owning the input stream
            pipeline: ChunkPipeline used for both chunk and final passes
            credentials: Service credentials (default: config.CREDENTIALS)
            language: Transcription language code (default: from config)
            chunk_interval: Seconds between chunk boundaries
            aggregator: CandidateAggregator (a fresh one if omitted)
            on_state_change: Callback when state changes (sync)
        """
        self.capture = capture
        self.pipeline = pipeline
        self.aggregator = aggregator or CandidateAggregator()
        self.on_state_change = on_state_change

        self._credentials = CREDENTIALS if credentials is None else credentials
        self._language = language or RECOGNITION.get("language", LANGUAGE_CODES[0])
        if chunk_interval is None:
            chunk_interval = RECOGNITION.get("chunk_interval", self.DEFAULT_CHUNK_INTERVAL)
        self.chunk_interval = chunk_interval

        # State
        self._state = EngineState.IDLE
        self._session = Session()
        self._chunk_count = 0
        self._timer_task: Optional[asyncio.Task] = None
        self._apply_task: Optional[asyncio.Task] = None
        self._pending: Optional[asyncio.Queue] = None

        # Presentation-facing values
        self.transcript = ""
        self.cleaned_text = ""
        self.error_message = ""
        self._status_message = ""
        self._history: List[HistoryEntry] = []

    @property
    def state(self) -> EngineState:
        """Current engine state."""
        return self._state

    @property
    def session_id(self) -> int:
        return self._session.id

    @property
    def is_recording(self) -> bool:
        return self.capture.is_recording

    @property
    def is_stopping(self) -> bool:
        return self._session.stopping

    @property
    def chunk_count(self) -> int:
        return self._chunk_count

    @property
    def language(self) -> str:
        return self._language

    def set_language(self, code: str) -> None:
        if code not in LANGUAGE_CODES:
            raise ValueError(f"Unsupported language: {code}")
        self._language = code

    @property
    def status_message(self) -> str:
        return self._status_message or self.aggregator.status_message

    @property
    def best_result(self) -> Optional[RecognitionResult]:
        return self.aggregator.best_result

    @property
    def history(self) -> List[HistoryEntry]:
        return list(self._history)

    def _set_state(self, new_state: EngineState):
        if new_state == self._state:
            return
        old_state = self._state
        self._state = new_state
        logger.debug(f"Engine state: {old_state.value} -> {new_state.value}")
        if self.on_state_change:
            try:
                self.on_state_change(new_state)
            except Exception as e:
                logger.error(f"State change callback failed: {e}")

    def _fail(self, error: RecognitionError) -> None:
        self.error_message = error.message
        self._set_state(EngineState.ERROR)

    def is_current(self, session_id: int) -> bool:
        """True if results tagged with session_id may still be applied."""
        return session_id == self._session.id

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> int:
        """
        Start a new recording session.

        Returns:
            The new session id

        Raises:
            MissingCredentials, PermissionDenied, RecordingStartFailed
        """
        if self._session.stopping:
            logger.warning("Stop in progress, ignoring start")
            return self._session.id

        self.error_message = ""
        self._status_message = ""

        if not has_credentials(self._credentials):
            error = MissingCredentials()
            self._fail(error)
            raise error

        try:
            await asyncio.to_thread(self.capture.request_permission)
        except RecognitionError as e:
            self._fail(e)
            raise

        if self.is_recording:
            # Restart: abandon the running session without a final pass
            logger.info(f"Restarting session {self._session.id}")
            self._end_scheduling()
            await asyncio.to_thread(self.capture.abort)

        self._session = Session(id=self._session.id + 1)
        self._reset_transient()

        try:
            await asyncio.to_thread(self.capture.start)
        except RecognitionError as e:
            self._fail(e)
            raise

        session_id = self._session.id
        self._pending = asyncio.Queue()
        self._apply_task = asyncio.create_task(self._apply_loop(session_id, self._pending))
        self._timer_task = asyncio.create_task(self._chunk_timer(session_id))
        self._set_state(EngineState.RECORDING)
        logger.info(f"Recording session {session_id} started (chunk interval: {self.chunk_interval}s)")
        return session_id

    async def stop(self) -> Optional[RecognitionResult]:
        """
        Stop recording and run the final pass over the last chunk.

        No-op if nothing is recording or a stop is already running.

        Returns:
            The final pass result (None if no song was found)

        Raises:
            RecognitionError: The final pass failed; error_message is set too
        """
        if not self.is_recording or self._session.stopping:
            return None

        self._session.stopping = True
        self._session.id += 1
        final_session = self._session.id
        self._end_scheduling()
        self._set_state(EngineState.PROCESSING)
        self.error_message = ""

        try:
            chunk = await asyncio.to_thread(self.capture.finish)
            if chunk is None or chunk.is_empty:
                raise NoAudioCaptured()

            chunk.session_id = final_session
            chunk.index = self._chunk_count + 1
            self._status_message = "Recognizing song..."

            report = await self.pipeline.process(chunk, final_session, final=True, language_code=self._language)
            await self._apply_report(report)
            self._set_state(EngineState.IDLE)
            return report.result

        except RecognitionError as e:
            logger.warning(f"Final pass failed: {e.message}")
            if isinstance(e, TranscriptTooShort) and self.is_current(final_session):
                self.transcript = e.transcript
                self.cleaned_text = e.cleaned
            await self._apply_observations(final_session, e.observations)
            self._fail(e)
            raise
        except Exception as e:
            logger.error(f"Final pass crashed: {e}", exc_info=True)
            self.error_message = str(e) or RecognitionError.default_message
            self._set_state(EngineState.ERROR)
            raise
        finally:
            self._session.stopping = False
            self._status_message = ""

    def clear(self) -> None:
        """Clear the displayed transcript, answer and error."""
        self.transcript = ""
        self.cleaned_text = ""
        self.error_message = ""
        self.aggregator.hide_best()
        if self._state == EngineState.ERROR:
            self._set_state(EngineState.IDLE)

    async def close(self) -> None:
        """Abandon any session and release client resources."""
        if self.is_recording:
            self._session.id += 1
            self._end_scheduling()
            await asyncio.to_thread(self.capture.abort)
        if self._apply_task:
            self._apply_task.cancel()
            self._apply_task = None
        for client in (self.pipeline.fingerprinter, self.pipeline.transcriber, self.pipeline.lyrics_provider):
            close = getattr(client, "close", None)
            if close:
                close()
        self._set_state(EngineState.IDLE)

    def _reset_transient(self) -> None:
        self.transcript = ""
        self.cleaned_text = ""
        self._chunk_count = 0
        self.aggregator.reset()

    def _end_scheduling(self) -> None:
        """Stop the chunk timer and let the apply loop drain what is queued."""
        if self._timer_task:
            self._timer_task.cancel()
            self._timer_task = None
        if self._pending is not None:
            self._pending.put_nowait(None)
            self._pending = None

    # ------------------------------------------------------------------
    # Chunk scheduling
    # ------------------------------------------------------------------

    async def _chunk_timer(self, session_id: int) -> None:
        """Fire a chunk boundary every chunk_interval seconds while the session is current."""
        try:
            while True:
                await asyncio.sleep(self.chunk_interval)
                if self._session.stopping or not self.is_current(session_id):
                    return
                self.on_chunk_boundary(session_id)
        except asyncio.CancelledError:
            logger.debug(f"Chunk timer for session {session_id} cancelled")

    def on_chunk_boundary(self, session_id: int) -> Optional[asyncio.Task]:
        """
        Hand off the current chunk and keep recording into the next one.

        Recording continues before the finished chunk is even dispatched, so
        recognition latency never causes a gap.
        """
        if not self.is_current(session_id) or self._pending is None:
            return None

        chunk: AudioChunk = self.capture.rotate()
        if chunk.is_empty:
            logger.debug("Chunk boundary with no audio, skipping")
            return None

        self._chunk_count += 1
        chunk.session_id = session_id
        chunk.index = self._chunk_count
        self._status_message = f"Recognizing song (chunk {chunk.index})..."

        task = asyncio.create_task(
            self.pipeline.process(chunk, session_id, final=False, language_code=self._language)
        )
        self._pending.put_nowait(task)
        return task

    async def _apply_loop(self, session_id: int, pending: asyncio.Queue) -> None:
        """
        Sole writer for chunk results.

        Awaits chunk passes in boundary order and applies each report only if
        its session is still current. A failed chunk never ends the loop.
        """
        while True:
            task = await pending.get()
            if task is None:
                break

            await asyncio.wait({task})
            if task.cancelled():
                continue
            error = task.exception()
            if error is not None:
                logger.warning(f"Chunk pass failed in session {session_id}: {error}")
                continue

            report: ChunkReport = task.result()
            if await self._apply_report(report):
                if self._status_message.startswith("Recognizing song (chunk"):
                    self._status_message = ""

        logger.debug(f"Apply loop for session {session_id} finished")

    async def _apply_report(self, report: ChunkReport) -> bool:
        """Apply a pass's observations if its session is current. Returns False if discarded."""
        if not self.is_current(report.session_id):
            logger.debug(
                f"Discarding stale result from session {report.session_id} "
                f"chunk {report.chunk_index} (current: {self._session.id})"
            )
            return False

        await self._apply_observations(report.session_id, report.observations)

        if report.final:
            self.transcript = report.transcript
            self.cleaned_text = report.cleaned
            if report.history_entry:
                self._history.insert(0, report.history_entry)
        return True

    async def _apply_observations(self, session_id: int, observations) -> None:
        for result, confidence in observations:
            if not self.is_current(session_id):
                return
            await self.aggregator.observe(result, confidence)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        """
        Get comprehensive engine status.

        Returns:
            Status dict for API response
        """
        best = self.aggregator.best_result
        return {
            "state": self._state.value,
            "session_id": self._session.id,
            "is_recording": self.is_recording,
            "is_stopping": self._session.stopping,
            "chunk_count": self._chunk_count,
            "language": self._language,
            "status_message": self.status_message,
            "error_message": self.error_message,
            "transcript": self.transcript,
            "cleaned_text": self.cleaned_text,
            "best_result": best.to_dict() if best else None,
            "best_score": round(self.aggregator.best_score, 4),
            "candidates": [candidate.to_dict() for candidate in self.aggregator.candidates],
        }
