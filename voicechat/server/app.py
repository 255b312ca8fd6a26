"""HTTP endpoints for transcription and speech synthesis."""

import json
import logging
from typing import Optional

from aiohttp import web
from pydantic import ValidationError

from ..models.api import SpeechRequest, TranscriptionResponse, SegmentBody, ErrorBody
from ..speech.base import AbstractSpeechBackend
from ..speech.text import strip_stage_directions
from ..transcription.base import AbstractTranscriptionBackend

logger = logging.getLogger(__name__)

TRANSCRIPTION_BACKEND = web.AppKey("transcription_backend", AbstractTranscriptionBackend)
SPEECH_BACKEND = web.AppKey("speech_backend", AbstractSpeechBackend)

MAX_UPLOAD_BYTES = 25 * 1024 * 1024


def _error(status: int, error: str, message: Optional[str] = None) -> web.Response:
    body = ErrorBody(error=error, message=message)
    return web.json_response(body.model_dump(exclude_none=True), status=status)


async def handle_transcription(request: web.Request) -> web.Response:
    """POST /api/transcription: multipart `audio` file plus optional `language`."""
    try:
        if 'multipart/form-data' not in request.headers.get('content-type', ''):
            return _error(400, "Expected multipart/form-data")

        form = await request.post()
        upload = form.get('audio')
        language = form.get('language') or None
        if not isinstance(upload, web.FileField):
            return _error(400, "Missing audio file")

        audio = upload.file.read()
        mime_type = upload.content_type or "application/octet-stream"
        logger.info(f"Transcription request: {len(audio)} bytes ({mime_type}), language={language}")

        backend = request.app[TRANSCRIPTION_BACKEND]
        result = await backend.transcribe(audio, mime_type, language)

        body = TranscriptionResponse(
            text=result.text,
            segments=[SegmentBody(start=s.start, end=s.end, text=s.text) for s in result.segments],
            language=result.language,
            duration_in_seconds=result.duration_seconds,
            warnings=result.warnings,
        )
        return web.json_response(body.model_dump(by_alias=True))
    except web.HTTPException:
        raise
    except Exception as e:
        logger.error(f"Transcription error: {e}", exc_info=True)
        return _error(500, "Transcription failed")


async def handle_speech(request: web.Request) -> web.Response:
    """POST /api/speech: JSON {text, voice?, language?} -> audio bytes."""
    try:
        backend = request.app[SPEECH_BACKEND]
        if backend is None:
            return _error(500, "Missing ELEVENLABS_API_KEY")

        try:
            speech_request = SpeechRequest.model_validate(await request.json())
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Unreadable speech request: {e}")
            return _error(400, "Missing text")
        if not speech_request.text or not speech_request.text.strip():
            return _error(400, "Missing text")

        cleaned = strip_stage_directions(speech_request.text)
        if not cleaned:
            return _error(400, "No speakable text after filtering")
        logger.debug(f"Speech text: '{speech_request.text}' -> '{cleaned}'")

        audio = await backend.synthesize(cleaned, speech_request.voice, speech_request.language)
        if not audio.data:
            return _error(500, "No audio bytes generated")

        return web.Response(
            body=audio.data,
            content_type=audio.content_type or "audio/mpeg",
            headers={"Cache-Control": "no-store"},
        )
    except web.HTTPException:
        raise
    except Exception as e:
        logger.error(f"Speech error: {e}", exc_info=True)
        return _error(500, "Speech generation failed", str(e))


async def _cleanup_backends(app: web.Application) -> None:
    await app[TRANSCRIPTION_BACKEND].cleanup()


def build_app(transcription_backend: AbstractTranscriptionBackend,
              speech_backend: Optional[AbstractSpeechBackend],
              transcription_path: str = "/api/transcription",
              speech_path: str = "/api/speech",
              max_upload_bytes: int = MAX_UPLOAD_BYTES) -> web.Application:
    """Create the web application.

    Args:
        transcription_backend: Provider behind the transcription endpoint
        speech_backend: Provider behind the speech endpoint, None when unavailable
        transcription_path: Route of the transcription endpoint
        speech_path: Route of the speech endpoint
        max_upload_bytes: Largest accepted request body
    """
    app = web.Application(client_max_size=max_upload_bytes)
    app[TRANSCRIPTION_BACKEND] = transcription_backend
    app[SPEECH_BACKEND] = speech_backend
    app.router.add_post(transcription_path, handle_transcription)
    app.router.add_post(speech_path, handle_speech)
    app.on_cleanup.append(_cleanup_backends)
    return app
