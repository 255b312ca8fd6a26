"""Transcription backends for the transcription endpoint."""

import logging

from .base import AbstractTranscriptionBackend
from ..models.transcription import TranscriptionResult
from .groq_backend import GroqWhisperBackend
from .google_backend import GoogleSpeechBackend

logger = logging.getLogger(__name__)

__all__ = [
    "AbstractTranscriptionBackend",
    "TranscriptionResult",
    "GroqWhisperBackend",
    "GoogleSpeechBackend",
    "create_transcription_backend",
]


def create_transcription_backend(config) -> AbstractTranscriptionBackend:
    """Build the backend named by `transcription.backend` ('groq' or 'google')."""
    name = config.get('transcription.backend', 'groq')
    logger.info(f"Creating transcription backend: {name}")

    if name == 'groq':
        return GroqWhisperBackend(
            api_key=config.get_api_key('transcription.groq.api_key', 'GROQ_API_KEY'),
            model=config.get('transcription.groq.model', 'whisper-large-v3'),
            base_url=config.get('transcription.groq.base_url', 'https://api.groq.com/openai/v1'),
        )
    if name == 'google':
        backend = GoogleSpeechBackend(
            credentials_path=config.get('transcription.google_cloud.credentials_path'),
            language=config.get('transcription.google_cloud.language', 'en-US'),
            enable_automatic_punctuation=config.get(
                'transcription.google_cloud.enable_automatic_punctuation', True),
        )
        if not backend.initialize():
            raise RuntimeError("Google Speech backend failed to initialize")
        return backend
    raise ValueError(f"Unknown transcription backend: {name}")
