"""Groq Whisper transcription backend (OpenAI-compatible audio API)."""

import time
import logging
from typing import Optional

import aiohttp

from .base import AbstractTranscriptionBackend
from ..models.transcription import TranscriptionResult, TranscriptionSegment

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


class GroqWhisperBackend(AbstractTranscriptionBackend):
    """Transcribes audio with Whisper hosted by Groq."""

    service_name = "Groq Whisper"

    def __init__(self, api_key: str, model: str = "whisper-large-v3", base_url: str = GROQ_BASE_URL):
        """Initialize Groq backend.

        Args:
            api_key: Groq API key
            model: Transcription model name
            base_url: API root, overridable for compatible providers
        """
        if not api_key:
            raise ValueError("Groq API key is required")
        self.api_key = api_key
        self.model = model
        self.url = f"{base_url.rstrip('/')}/audio/transcriptions"

        logger.info(f"GroqWhisperBackend initialized with model: {model}")

    async def transcribe(self, audio: bytes, mime_type: str,
                         language: Optional[str] = None) -> TranscriptionResult:
        start_time = time.time()

        form = aiohttp.FormData()
        form.add_field('file', audio, filename="audio" + _extension(mime_type), content_type=mime_type)
        form.add_field('model', self.model)
        form.add_field('response_format', 'verbose_json')
        if language:
            form.add_field('language', language)

        headers = {"Authorization": f"Bearer {self.api_key}"}
        async with aiohttp.ClientSession() as session:
            async with session.post(self.url, headers=headers, data=form) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise RuntimeError(f"Groq transcription API error: {response.status} - {error_text}")
                body = await response.json()

        processing_time = time.time() - start_time
        segments = [
            TranscriptionSegment(start=float(s.get('start', 0.0)), end=float(s.get('end', 0.0)),
                                 text=s.get('text', '').strip())
            for s in body.get('segments') or []
        ]
        logger.debug(f"Groq transcription: '{body.get('text', '')}' ({processing_time:.3f}s)")
        return TranscriptionResult(
            text=(body.get('text') or '').strip(),
            segments=segments,
            language=body.get('language'),
            duration_seconds=body.get('duration'),
            service=self.service_name,
            processing_time=processing_time,
        )


def _extension(mime_type: str) -> str:
    subtype = mime_type.split(';', 1)[0].split('/')[-1].strip()
    return {"x-wav": ".wav", "mpeg": ".mp3", "mp4": ".m4a"}.get(subtype, f".{subtype or 'webm'}")
