from typing import Optional

from quart import Quart, jsonify, request

from audio_recognition.engine import RecognitionEngine
from audio_recognition.errors import RecognitionError
from config import LANGUAGE_OPTIONS, VERSION
from logging_config import get_logger
from settings import settings

logger = get_logger(__name__)

app = Quart(__name__)
app.config['SERVER_NAME'] = None

_engine: Optional[RecognitionEngine] = None


def set_engine(engine: Optional[RecognitionEngine]) -> None:
    """Attach the recognition engine served by the API."""
    global _engine
    _engine = engine


def get_engine() -> RecognitionEngine:
    if _engine is None:
        raise RuntimeError("Recognition engine not initialized")
    return _engine


def _error_response(error: RecognitionError, status: int):
    return jsonify(error.to_dict()), status


# Errors caused by the environment or the user, not by a service failing
_CLIENT_ERRORS = {"MISSING_CREDENTIALS", "PERMISSION_DENIED", "NO_AUDIO_CAPTURED",
                  "NO_SPEECH_DETECTED", "TRANSCRIPT_TOO_SHORT"}


@app.after_request
async def add_cache_headers(response):
    """API responses are live state, never cache them."""
    response.headers['Cache-Control'] = 'no-cache, no-store, must-revalidate'
    return response


@app.route('/api/health', methods=['GET'])
async def health():
    return jsonify({"status": "ok", "version": VERSION})


# ============================================================================
# Recognition API
# ============================================================================

@app.route('/api/recognition/status', methods=['GET'])
async def recognition_status():
    """Current state, best answer, ranked candidates and transcript."""
    return jsonify(get_engine().get_status())


@app.route('/api/recognition/start', methods=['POST'])
async def recognition_start():
    """Start (or restart) a recording session."""
    engine = get_engine()
    try:
        session_id = await engine.start()
    except RecognitionError as e:
        return _error_response(e, 400 if e.code in _CLIENT_ERRORS else 500)
    return jsonify({"status": "recording", "session_id": session_id})


@app.route('/api/recognition/stop', methods=['POST'])
async def recognition_stop():
    """
    Stop recording and run the final recognition pass.
    Responds once the pass has finished.
    """
    engine = get_engine()
    try:
        result = await engine.stop()
    except RecognitionError as e:
        return _error_response(e, 422 if e.code in _CLIENT_ERRORS else 502)
    except Exception as e:
        logger.error(f"Recognition stop error: {e}")
        return jsonify({"error": "INTERNAL_ERROR", "message": str(e)}), 500

    return jsonify({
        "status": "stopped",
        "result": result.to_dict() if result else None,
        "best_result": engine.best_result.to_dict() if engine.best_result else None,
    })


@app.route('/api/recognition/clear', methods=['POST'])
async def recognition_clear():
    get_engine().clear()
    return jsonify({"status": "cleared"})


@app.route('/api/recognition/history', methods=['GET'])
async def recognition_history():
    return jsonify({"history": [entry.to_dict() for entry in get_engine().history]})


@app.route('/api/recognition/language', methods=['GET'])
async def recognition_get_language():
    return jsonify({"language": get_engine().language, "options": LANGUAGE_OPTIONS})


@app.route('/api/recognition/language', methods=['POST'])
async def recognition_set_language():
    """Body: {"language": "en"}"""
    data = await request.get_json(silent=True) or {}
    try:
        get_engine().set_language(data.get("language", ""))
    except ValueError as e:
        return jsonify({"error": "INVALID_LANGUAGE", "message": str(e)}), 400
    return jsonify({"language": get_engine().language})


# ============================================================================
# Settings API
# ============================================================================

@app.route("/api/settings", methods=['GET'])
async def api_get_settings():
    return jsonify(settings.get_all())


@app.route("/api/settings/<key>", methods=['POST'])
async def api_update_setting(key: str):
    """Body: {"value": ...}"""
    data = await request.get_json(silent=True) or {}
    if 'value' not in data:
        return jsonify({"error": "No value"}), 400
    try:
        needs_restart = settings.set(key, data['value'])
        settings.save_to_config()
    except KeyError as e:
        return jsonify({"error": str(e)}), 400
    except OSError as e:
        logger.error(f"Failed to save setting {key}: {e}")
        return jsonify({"error": str(e)}), 500
    return jsonify({"success": True, "requires_restart": needs_restart})


@app.route("/api/settings", methods=['POST'])
async def api_update_settings():
    data = await request.get_json(silent=True) or {}
    needs_restart = False
    try:
        for key, value in data.items():
            needs_restart |= settings.set(key, value)
        settings.save_to_config()
    except KeyError as e:
        return jsonify({"error": str(e)}), 400
    except OSError as e:
        logger.error(f"Failed to save settings: {e}")
        return jsonify({"error": str(e)}), 500
    return jsonify({"success": True, "requires_restart": needs_restart})


@app.route("/api/settings/reset", methods=['POST'])
async def api_reset_settings():
    try:
        settings.reset_to_defaults()
    except OSError as e:
        logger.error(f"Failed to reset settings: {e}")
        return jsonify({"error": str(e)}), 500
    logger.info("Settings reset to defaults")
    return jsonify({"success": True})
