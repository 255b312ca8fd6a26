"""Simple YAML configuration loader for VoiceChat."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List
import logging

import pyaudio

from ..models.audio import CaptureFormat

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "voicechat.yaml"

# Prioritized capture encodings, first accepted one wins
DEFAULT_CAPTURE_FORMATS = [
    {"mime_type": "audio/wav", "sample_rate": 16000, "sample_format": "int16"},
    {"mime_type": "audio/wav", "sample_rate": 48000, "sample_format": "int16"},
    {"mime_type": "audio/wav", "sample_rate": 44100, "sample_format": "int16"},
]

SAMPLE_FORMATS = {
    "int16": pyaudio.paInt16,
    "float32": pyaudio.paFloat32,
}


class VoiceChatConfig:
    """VoiceChat configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, uses voicechat.yaml
                        in the current directory.
        """
        self.config_file = Path(config_path or DEFAULT_CONFIG_NAME)

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not config:
            raise ValueError("Configuration file is empty")
        if not isinstance(config, dict):
            raise ValueError("Configuration root must be a mapping")

        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        transcription = config.get('transcription') or {}
        google = transcription.get('google_cloud') or {}
        if google.get('credentials_path') and not os.path.isabs(google['credentials_path']):
            google['credentials_path'] = str(config_dir / google['credentials_path'])

        if 'logging' in config and 'file_path' in config['logging']:
            log_path = config['logging']['file_path']
            if not os.path.isabs(log_path):
                config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'silence.threshold').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self.config

        for key in key_path.split('.'):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation."""
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_api_key(self, key_path: str, env_var: str) -> Optional[str]:
        """Get an API key from the config, falling back to an environment variable."""
        return self.get(key_path) or os.environ.get(env_var) or None

    def get_silence_settings(self) -> Dict[str, float]:
        """Silence detector parameters (threshold on a 0..1 RMS scale, times in ms)."""
        return {
            "threshold": float(self.get('silence.threshold', 0.015)),
            "window_ms": float(self.get('silence.window_ms', 1200)),
            "tick_ms": float(self.get('silence.tick_ms', 16)),
        }

    def get_capture_formats(self) -> List[CaptureFormat]:
        """Prioritized capture format candidates."""
        formats = []
        channels = self.get('audio.channels', 1)
        for entry in self.get('audio.formats') or DEFAULT_CAPTURE_FORMATS:
            sample_format = entry.get('sample_format', 'int16')
            if sample_format not in SAMPLE_FORMATS:
                raise ValueError(f"Unknown sample format in audio.formats: {sample_format}")
            formats.append(CaptureFormat(
                mime_type=entry.get('mime_type', 'audio/wav'),
                sample_rate=int(entry['sample_rate']),
                channels=int(entry.get('channels', channels)),
                sample_format=SAMPLE_FORMATS[sample_format],
            ))
        return formats

    def get_endpoint(self, name: str) -> str:
        """Absolute URL of one of the voice endpoints ('transcription' or 'speech')."""
        base_url = self.get('endpoints.base_url', 'http://127.0.0.1:8080').rstrip('/')
        path = self.get(f'endpoints.{name}_path', f'/api/{name}')
        return f"{base_url}{path}"
