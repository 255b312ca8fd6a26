"""Speech synthesis backends and text preparation."""

import logging
from typing import Optional

from .base import AbstractSpeechBackend
from .elevenlabs_backend import ElevenLabsSpeechBackend
from .text import strip_stage_directions

logger = logging.getLogger(__name__)

__all__ = [
    "AbstractSpeechBackend",
    "ElevenLabsSpeechBackend",
    "strip_stage_directions",
    "create_speech_backend",
]


def create_speech_backend(config) -> Optional[AbstractSpeechBackend]:
    """Build the ElevenLabs backend, or None when no API key is configured."""
    api_key = config.get_api_key('speech.elevenlabs.api_key', 'ELEVENLABS_API_KEY')
    if not api_key:
        logger.warning("No ElevenLabs API key configured, speech endpoint will refuse requests")
        return None
    return ElevenLabsSpeechBackend(
        api_key=api_key,
        voice_id=config.get('speech.elevenlabs.voice_id', 'jZPrG0t6FOc6pSrEustX'),
        model=config.get('speech.elevenlabs.model', 'eleven_turbo_v2_5'),
        output_format=config.get('speech.elevenlabs.output_format', 'mp3_44100_128'),
    )
