import asyncio
import logging
import signal
import sys

from hypercorn.asyncio import serve
from hypercorn.config import Config

from audio_recognition.audd import AudDRecognizer
from audio_recognition.capture import MicrophoneCapture
from audio_recognition.engine import RecognitionEngine
from audio_recognition.pipeline import ChunkPipeline
from audio_recognition.transcriber import AssemblyAITranscriber
from config import CREDENTIALS, DEBUG, RECOGNITION, SERVER, VERSION, has_credentials
from logging_config import setup_logging, get_logger
from providers.genius import GeniusProvider
from server import app, set_engine

logger = get_logger(__name__)


def build_engine() -> RecognitionEngine:
    """Wire the live capture and the three recognition services into an engine."""
    capture = MicrophoneCapture(
        device_name=RECOGNITION["device_name"],
        sample_rate=RECOGNITION["sample_rate"],
        channels=RECOGNITION["channels"],
    )
    pipeline = ChunkPipeline(
        fingerprinter=AudDRecognizer(CREDENTIALS["audd_api_token"]),
        transcriber=AssemblyAITranscriber(CREDENTIALS["assemblyai_api_key"]),
        lyrics_provider=GeniusProvider(CREDENTIALS["genius_access_token"]),
    )
    return RecognitionEngine(
        capture=capture,
        pipeline=pipeline,
        credentials=CREDENTIALS,
        language=RECOGNITION["language"],
        chunk_interval=RECOGNITION["chunk_interval"],
    )


async def run_server(engine: RecognitionEngine) -> None:
    """Run the Quart API with Hypercorn until interrupted."""
    config = Config()
    config.bind = [f"{SERVER['host']}:{SERVER['port']}"]
    config.use_reloader = False
    config.graceful_timeout = 2
    config.shutdown_timeout = 2

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown_event.set)
        except NotImplementedError:  # Windows
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(shutdown_event.set))

    set_engine(engine)
    logger.info(f"SongSleuth {VERSION} listening on http://{SERVER['host']}:{SERVER['port']}")
    try:
        await serve(app, config, shutdown_trigger=shutdown_event.wait)
    finally:
        await engine.close()
        set_engine(None)
        logger.info("SongSleuth stopped")


def main() -> int:
    setup_logging(
        console_level=DEBUG["log_level"],
        console=str(DEBUG["log_to_console"]).lower() in ("true", "1", "yes"),
        log_file=DEBUG["log_file"],
        max_bytes=DEBUG["log_rotation"]["max_bytes"],
        backup_count=DEBUG["log_rotation"]["backup_count"],
        log_providers=str(DEBUG["log_providers"]).lower() in ("true", "1", "yes"),
    )

    if not has_credentials():
        logger.warning("Recognition credentials missing: set ASSEMBLYAI_API_KEY, GENIUS_ACCESS_TOKEN and AUDD_API_TOKEN")
    if not MicrophoneCapture.is_available():
        logger.warning("sounddevice/PortAudio unavailable, recording will fail")

    try:
        asyncio.run(run_server(build_engine()))
    except KeyboardInterrupt:
        logging.getLogger().info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
