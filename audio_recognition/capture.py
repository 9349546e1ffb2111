"""
Audio Capture Module

Continuous microphone capture using sounddevice. Audio is accumulated into the
current chunk; rotate() hands the finished chunk off and keeps recording into
a fresh one, so chunk boundaries never create a gap in the capture.
"""

import io
import threading
import time
import wave
from dataclasses import dataclass
from typing import Optional, List, Dict, Any

import numpy as np

try:
    import sounddevice as sd
except (ImportError, OSError):  # OSError for missing PortAudio library
    sd = None

from logging_config import get_logger
from .errors import PermissionDenied, RecordingStartFailed, RecordingStopFailed

logger = get_logger(__name__)


@dataclass
class AudioChunk:
    """
    One bounded segment of captured audio.

    Attributes:
        data: Audio samples as numpy array (int16, shape (frames, channels))
        sample_rate: Sample rate in Hz
        channels: Number of audio channels
        duration: Duration of captured audio in seconds
        capture_start_time: Unix timestamp when this chunk started recording
        session_id: Session that recorded the chunk (assigned by the engine)
        index: 1-based chunk sequence number within the session
    """
    data: np.ndarray
    sample_rate: int
    channels: int
    duration: float
    capture_start_time: float
    session_id: int = 0
    index: int = 0

    @property
    def is_empty(self) -> bool:
        return self.data.size == 0

    def get_max_amplitude(self) -> int:
        """Peak absolute sample value (0 for an empty chunk)."""
        if self.is_empty:
            return 0
        return int(np.max(np.abs(self.data.astype(np.int32))))

    def to_wav_bytes(self) -> bytes:
        """Encode the chunk as a 16-bit PCM WAV file using the stdlib wave module."""
        buffer = io.BytesIO()
        with wave.open(buffer, 'wb') as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(2)  # int16 = 2 bytes per sample
            wf.setframerate(self.sample_rate)
            wf.writeframes(self.data.astype(np.int16).tobytes())
        return buffer.getvalue()


class MicrophoneCapture:
    """
    Owns the live microphone stream.

    The sounddevice callback runs on PortAudio's thread and appends blocks to
    the active chunk under a lock; rotate() and finish() swap the block list
    out atomically, transferring ownership of the finished audio to the caller.
    """

    DEFAULT_SAMPLE_RATE = 44100
    DEFAULT_CHANNELS = 1
    BLOCK_SECONDS = 0.1

    def __init__(
        self,
        device_name: Optional[str] = None,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        channels: int = DEFAULT_CHANNELS,
    ):
        self._device_name = device_name
        self.sample_rate = sample_rate
        self.channels = channels

        self._stream: Any = None
        self._lock = threading.Lock()
        self._blocks: List[np.ndarray] = []
        self._chunk_start_time: float = 0.0
        self.overflow_count = 0

        if not sd:
            logger.error("sounddevice not installed. Audio capture unavailable.")

    @staticmethod
    def is_available() -> bool:
        """Check if sounddevice (and PortAudio) is available."""
        return sd is not None

    @property
    def is_recording(self) -> bool:
        return self._stream is not None

    @staticmethod
    def list_devices() -> List[Dict[str, Any]]:
        """List input-capable devices."""
        if not sd:
            return []
        devices = []
        for idx, device in enumerate(sd.query_devices()):
            if device.get('max_input_channels', 0) > 0:
                devices.append({
                    "id": idx,
                    "name": device.get('name', f"Device {idx}"),
                    "channels": device.get('max_input_channels'),
                    "sample_rate": int(device.get('default_samplerate', 0)),
                })
        return devices

    def _resolve_device(self) -> Optional[int]:
        """Find the configured device by name, or None for the system default."""
        if not self._device_name:
            return None
        needle = self._device_name.lower()
        for device in self.list_devices():
            if needle in device["name"].lower():
                return device["id"]
        logger.warning(f"Input device '{self._device_name}' not found, using system default")
        return None

    def request_permission(self) -> None:
        """
        Verify that an input device can be opened with our settings.

        PortAudio has no separate permission prompt; a refused or missing
        microphone surfaces as an error when validating the input settings.

        Raises:
            RecordingStartFailed: sounddevice/PortAudio is not installed
            PermissionDenied: No usable input device or access refused
        """
        if not sd:
            raise RecordingStartFailed("Audio capture unavailable (sounddevice not installed).")
        try:
            sd.check_input_settings(
                device=self._resolve_device(),
                channels=self.channels,
                samplerate=self.sample_rate,
                dtype='int16',
            )
        except (sd.PortAudioError, ValueError) as e:
            logger.warning(f"Microphone not accessible: {e}")
            raise PermissionDenied() from e

    def start(self) -> None:
        """Open the input stream and begin the first chunk."""
        if self._stream is not None:
            return
        if not sd:
            raise RecordingStartFailed("Audio capture unavailable (sounddevice not installed).")

        with self._lock:
            self._blocks = []
            self.overflow_count = 0
            self._chunk_start_time = time.time()

        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                device=self._resolve_device(),
                dtype='int16',
                blocksize=int(self.sample_rate * self.BLOCK_SECONDS),
                callback=self._on_audio,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            logger.error(f"Failed to open input stream: {e}")
            raise RecordingStartFailed() from e

        self._stream = stream
        logger.debug(f"Capture started: rate={self.sample_rate}, channels={self.channels}")

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status and status.input_overflow:
            self.overflow_count += 1
        with self._lock:
            # indata is reused by PortAudio after the callback returns
            self._blocks.append(np.array(indata, dtype=np.int16, copy=True))

    def _take_chunk(self) -> AudioChunk:
        """Swap out the active block list and start a new chunk. Caller holds the lock."""
        blocks, self._blocks = self._blocks, []
        start_time, self._chunk_start_time = self._chunk_start_time, time.time()

        if blocks:
            data = np.concatenate(blocks)
        else:
            data = np.zeros((0, self.channels), dtype=np.int16)

        return AudioChunk(
            data=data,
            sample_rate=self.sample_rate,
            channels=self.channels,
            duration=len(data) / float(self.sample_rate),
            capture_start_time=start_time,
        )

    def rotate(self) -> AudioChunk:
        """
        Finalize the current chunk and immediately continue into the next one.

        The stream stays open, so no samples are lost between chunks.
        """
        with self._lock:
            chunk = self._take_chunk()
        logger.debug(f"Chunk rotated ({chunk.duration:.1f}s, max amplitude {chunk.get_max_amplitude()})")
        return chunk

    def finish(self) -> AudioChunk:
        """
        Close the stream and return the last chunk.

        Raises:
            RecordingStopFailed: The device could not be stopped cleanly
        """
        stream, self._stream = self._stream, None
        error: Optional[Exception] = None
        if stream is not None:
            try:
                stream.stop()
            except Exception as e:
                error = e
            finally:
                # Close even if stop failed so the device handle never dangles
                try:
                    stream.close()
                except Exception as e:
                    error = error or e

        with self._lock:
            chunk = self._take_chunk()

        if error is not None:
            logger.error(f"Failed to stop input stream: {error}")
            raise RecordingStopFailed() from error

        if self.overflow_count:
            logger.warning(f"Input overflowed {self.overflow_count} times, audio was dropped")
        logger.debug(f"Capture finished ({chunk.duration:.1f}s)")
        return chunk

    def abort(self) -> None:
        """Close the stream and drop any buffered audio."""
        try:
            self.finish()
        except RecordingStopFailed:
            logger.debug("Ignoring stop failure during abort")
