"""
SongSleuth Settings Manager
Handles dynamic configuration management using settings.json
"""

import json
import os
import shutil
import sys
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from logging_config import get_logger

logger = get_logger(__name__)

if getattr(sys, 'frozen', False):
    ROOT_DIR = Path(sys.executable).parent
else:
    ROOT_DIR = Path(__file__).parent

SETTINGS_FILE = Path(os.getenv("SONGSLEUTH_SETTINGS_FILE", str(ROOT_DIR / "settings.json")))


@dataclass
class Setting:
    """Represents a single configurable setting"""
    name: str
    type: type
    default: Any
    requires_restart: bool = False
    category: Optional[str] = None
    description: Optional[str] = None
    options: Optional[list] = None  # For select
    min_val: Optional[float] = None
    max_val: Optional[float] = None

    def validate_and_convert(self, value: Any) -> Any:
        try:
            if self.type == bool and isinstance(value, str):
                return value.lower() in ('true', '1', 'yes', 'on')
            converted = self.type(value)
            if self.options is not None and converted not in self.options:
                return self.default
            if self.min_val is not None and converted < self.min_val:
                return self.default
            if self.max_val is not None and converted > self.max_val:
                return self.default
            return converted
        except (ValueError, TypeError):
            return self.default


class SettingsManager:
    def __init__(self, path: Optional[Path] = None):
        self._path = path or SETTINGS_FILE
        self._settings: Dict[str, Any] = {}

        self._definitions = {
            # Debug
            "debug.log_file": Setting("Log File", str, "songsleuth.log", True, "Debug", "Log file name"),
            "debug.log_level": Setting("Log Level", str, "INFO", True, "Debug", "Logging verbosity", options=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
            "debug.log_providers": Setting("Log Providers", bool, True, False, "Debug", "Log recognition client requests"),
            "debug.log_to_console": Setting("Log to Console", bool, True, True, "Debug", "Print logs to terminal"),
            "debug.log_rotation.max_bytes": Setting("Max Log Size", int, 10485760, True, "Debug", "Max log file size (bytes)"),
            "debug.log_rotation.backup_count": Setting("Log Backups", int, 5, True, "Debug", "Number of backups to keep"),

            # Server
            "server.port": Setting("Port", int, 9014, True, "Server", "Server port", min_val=1, max_val=65535),
            "server.host": Setting("Host", str, "127.0.0.1", True, "Server", "Bind address"),

            # Recognition session
            "recognition.language": Setting("Language", str, "vi", False, "Recognition", "Transcription language", options=["vi", "en", "es", "ja", "ko"]),
            "recognition.chunk_interval": Setting("Chunk Interval", float, 8.0, False, "Recognition", "Seconds per recording chunk", min_val=1.0, max_val=60.0),
            "recognition.sample_rate": Setting("Sample Rate", int, 44100, True, "Recognition", "Capture sample rate (Hz)"),
            "recognition.channels": Setting("Channels", int, 1, True, "Recognition", "Capture channels", min_val=1, max_val=2),
            "recognition.device_name": Setting("Input Device", str, "", True, "Recognition", "Microphone name (empty = system default)"),

            # Transcription polling
            "providers.assemblyai.poll_interval": Setting("Poll Interval", float, 1.5, False, "Providers", "Transcript status poll interval (s)", min_val=0.1, max_val=10.0),
            "providers.assemblyai.poll_attempts": Setting("Poll Attempts", int, 30, False, "Providers", "Transcript status polls before timeout", min_val=1, max_val=200),
            "providers.assemblyai.timeout": Setting("Timeout", int, 30, False, "Providers", "Request timeout (s)"),
            "providers.genius.timeout": Setting("Timeout", int, 10, False, "Providers", "Request timeout (s)"),
            "providers.audd.timeout": Setting("Timeout", int, 30, False, "Providers", "Request timeout (s)"),
        }

        self.load_settings()

    def load_settings(self) -> None:
        """Load settings from JSON, fall back to defaults"""
        self._settings = {}

        for key, definition in self._definitions.items():
            self._settings[key] = definition.default

        if not self._path.exists():
            return

        try:
            with open(self._path, 'r', encoding='utf-8') as f:
                saved = json.load(f)
            for key, val in saved.items():
                if key in self._definitions:
                    self._settings[key] = self._definitions[key].validate_and_convert(val)
                else:
                    # Keep unknown keys so a newer settings file survives a round-trip
                    self._settings[key] = val
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load {self._path.name}: {e} - using defaults")
            backup_path = self._path.with_suffix('.json.corrupted')
            try:
                shutil.copy2(self._path, backup_path)
                logger.info(f"Backed up corrupted settings to {backup_path}")
            except OSError:
                logger.debug("Could not back up corrupted settings file")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.
        Priority:
        1. Loaded value (from JSON or Schema Default)
        2. Provided 'default' argument (if key unknown)
        """
        if key in self._settings:
            return self._settings[key]
        return default

    def set(self, key: str, value: Any) -> bool:
        """Set a known setting. Returns True if the change requires a restart."""
        if key not in self._definitions:
            raise KeyError(f"Unknown setting: {key}")

        setting = self._definitions[key]
        self._settings[key] = setting.validate_and_convert(value)
        return setting.requires_restart

    def save_to_config(self) -> None:
        """Save current memory settings to JSON file"""
        temp_path = self._path.parent / f"settings_{uuid.uuid4().hex}.json.tmp"
        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(self._settings, f, indent=4, sort_keys=True)
            # Atomic replace (works on both Windows and Unix)
            os.replace(temp_path, self._path)
        except OSError as e:
            logger.error(f"Failed to save settings: {e}")
            if temp_path.exists():
                temp_path.unlink()
            raise

    def get_all(self) -> Dict:
        """Return settings grouped by category"""
        result = {}
        for key, defin in self._definitions.items():
            cat = defin.category or "Misc"
            result.setdefault(cat, {})[key] = {
                "value": self._settings.get(key, defin.default),
                "name": defin.name,
                "description": defin.description,
                "type": defin.type.__name__,
                "requires_restart": defin.requires_restart,
                "options": defin.options,
            }
        return result

    def reset_to_defaults(self):
        if self._path.exists():
            os.remove(self._path)
        self.load_settings()


settings = SettingsManager()
