"""Client for the transcription endpoint."""

import time
import logging
from typing import Optional

import aiohttp

from ..errors import TranscriptionFailed
from ..models.transcription import TranscriptionResult

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = {
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/mp4": ".m4a",
    "audio/aac": ".aac",
    "audio/mpeg": ".mp3",
}


def _filename_for(mime_type: str) -> str:
    base = mime_type.split(";", 1)[0].strip().lower()
    return f"audio{AUDIO_EXTENSIONS.get(base, '.webm')}"


class TranscriptionClient:
    """Posts captured audio to the transcription endpoint and returns recognized text."""

    def __init__(self, endpoint_url: str, session: Optional[aiohttp.ClientSession] = None):
        """Initialize transcription client.

        Args:
            endpoint_url: Absolute URL of POST /api/transcription
            session: Shared aiohttp session; a short-lived one is used per call when None
        """
        self.endpoint_url = endpoint_url
        self._session = session

    async def transcribe(self, audio: bytes, mime_type: str = "audio/wav",
                         language: Optional[str] = None) -> TranscriptionResult:
        """Send one audio payload for recognition.

        Args:
            audio: Encoded audio file contents
            mime_type: Content type of `audio`
            language: Optional language hint (e.g. 'en')

        Returns:
            TranscriptionResult parsed from the endpoint's JSON body

        Raises:
            TranscriptionFailed: If the endpoint answers with a non-success status
        """
        form = aiohttp.FormData()
        form.add_field('audio', audio, filename=_filename_for(mime_type), content_type=mime_type)
        if language:
            form.add_field('language', language)

        logger.debug(f"Sending {len(audio)} bytes ({mime_type}) for transcription, language={language}")
        start_time = time.time()

        if self._session is not None:
            return await self._post(self._session, form, start_time)
        async with aiohttp.ClientSession() as session:
            return await self._post(session, form, start_time)

    async def _post(self, session: aiohttp.ClientSession, form: aiohttp.FormData,
                    start_time: float) -> TranscriptionResult:
        async with session.post(self.endpoint_url, data=form) as response:
            if not 200 <= response.status < 300:
                error_text = await response.text()
                raise TranscriptionFailed(response.status, error_text)
            body = await response.json()

        processing_time = time.time() - start_time
        result = TranscriptionResult.from_json(body, service="transcription-endpoint",
                                               processing_time=processing_time)
        logger.info(f"Transcription received: '{result.text}' ({processing_time:.3f}s)")
        return result
