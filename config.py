"""
SongSleuth Configuration Loader
Loads values from environment variables, .env and settings.json.
"""
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from settings import settings

# ==========================================
# Path Configuration
# ==========================================
if getattr(sys, 'frozen', False):
    ROOT_DIR = Path(sys.executable).parent
else:
    ROOT_DIR = Path(__file__).parent

VERSION = "0.4.0"

env_file = ROOT_DIR / '.env'
if env_file.exists():
    load_dotenv(env_file)


# Helper to prefer Env Var > Settings JSON > Default
def conf(key, default=None):
    # 1. Check Env Var (Highest Priority - good for docker/dev)
    env_val = os.getenv(key.upper().replace('.', '_'))
    if env_val is not None:
        return env_val

    # 2. Check Settings JSON
    json_val = settings.get(key)
    if json_val is not None:
        return json_val

    # 3. Default
    return default


# ==========================================
# EXPORTED CONFIG DICTS
# ==========================================

DEBUG = {
    "log_file": conf("debug.log_file", "songsleuth.log"),
    "log_level": conf("debug.log_level", "INFO"),
    "log_providers": conf("debug.log_providers", True),
    "log_to_console": conf("debug.log_to_console", True),
    "log_rotation": {
        "max_bytes": int(conf("debug.log_rotation.max_bytes", 10485760)),
        "backup_count": int(conf("debug.log_rotation.backup_count", 5)),
    }
}

SERVER = {
    "port": int(conf("server.port", 9014)),
    "host": conf("server.host", "127.0.0.1"),
}

# Credentials are read from the environment only, never from settings.json
CREDENTIALS = {
    "assemblyai_api_key": os.getenv("ASSEMBLYAI_API_KEY", ""),
    "genius_access_token": os.getenv("GENIUS_ACCESS_TOKEN", ""),
    "audd_api_token": os.getenv("AUDD_API_TOKEN", ""),
}

# Minimum length for a credential to be considered configured
MIN_CREDENTIAL_LENGTH = 10

LANGUAGE_OPTIONS = [
    {"label": "Vietnamese", "value": "vi"},
    {"label": "English", "value": "en"},
    {"label": "Spanish", "value": "es"},
    {"label": "Japanese", "value": "ja"},
    {"label": "Korean", "value": "ko"},
]
LANGUAGE_CODES = [option["value"] for option in LANGUAGE_OPTIONS]

RECOGNITION = {
    "language": conf("recognition.language", LANGUAGE_CODES[0]),
    "chunk_interval": float(conf("recognition.chunk_interval", 8.0)),
    "sample_rate": int(conf("recognition.sample_rate", 44100)),
    "channels": int(conf("recognition.channels", 1)),
    "device_name": conf("recognition.device_name", "") or None,
}

PROVIDERS = {
    "audd": {
        "base_url": "https://api.audd.io/",
        "timeout": int(conf("providers.audd.timeout", 30)),
        "return": "spotify,apple_music",
    },
    "assemblyai": {
        "base_url": "https://api.assemblyai.com/v2",
        "timeout": int(conf("providers.assemblyai.timeout", 30)),
        "poll_interval": float(conf("providers.assemblyai.poll_interval", 1.5)),
        "poll_attempts": int(conf("providers.assemblyai.poll_attempts", 30)),
    },
    "genius": {
        "base_url": "https://api.genius.com",
        "timeout": int(conf("providers.genius.timeout", 10)),
    },
}


# Helper functions
def get_provider_config(name: str) -> dict:
    return PROVIDERS.get(name, {})


def is_credential_valid(value: str) -> bool:
    return len((value or "").strip()) > MIN_CREDENTIAL_LENGTH


def has_credentials(credentials: dict = None) -> bool:
    """True when all three recognition services have a usable credential."""
    credentials = CREDENTIALS if credentials is None else credentials
    return all(
        is_credential_valid(credentials.get(key, ""))
        for key in ("assemblyai_api_key", "genius_access_token", "audd_api_token")
    )
