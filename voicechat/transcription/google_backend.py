"""Google Speech-to-Text transcription backend."""

import io
import time
import asyncio
import logging
from typing import Optional

from scipy.io import wavfile

from .base import AbstractTranscriptionBackend
from ..models.transcription import TranscriptionResult, TranscriptionSegment

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.oauth2 import service_account

logger = logging.getLogger(__name__)


class GoogleSpeechBackend(AbstractTranscriptionBackend):
    """Google Speech-to-Text API backend for transcription of WAV payloads."""

    service_name = "Google Speech-to-Text"

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 language: str = "en-US",
                 enable_automatic_punctuation: bool = True,
                 timeout: float = 30.0):
        """Initialize Google Speech backend.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            language: Default language code when the request carries no hint
            enable_automatic_punctuation: Enable automatic punctuation
            timeout: Per-request deadline in seconds
        """
        self.credentials_path = credentials_path
        if not self.credentials_path:
            raise ValueError("Google credentials path is required - cannot initialize without credentials")
        self.language = language
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.timeout = timeout
        self.client = None
        self.project_id = None

    def initialize(self) -> bool:
        """Initialize Google Speech client and verify credentials."""
        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
        self.client = speech.SpeechClient(credentials=credentials)
        self.project_id = credentials.project_id
        logger.info(f"Using Google Cloud project: {self.project_id}")
        return True

    async def transcribe(self, audio: bytes, mime_type: str,
                         language: Optional[str] = None) -> TranscriptionResult:
        if not mime_type.startswith(("audio/wav", "audio/x-wav")):
            raise ValueError(f"Google backend expects WAV audio, got {mime_type}")
        if self.client is None:
            self.initialize()

        sample_rate, samples = wavfile.read(io.BytesIO(audio))
        channels = 1 if samples.ndim == 1 else samples.shape[1]
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=sample_rate,
            audio_channel_count=channels,
            language_code=language or self.language,
            enable_automatic_punctuation=self.enable_automatic_punctuation,
            enable_word_time_offsets=True,
            model="latest_short",
        )
        recognition_audio = speech.RecognitionAudio(content=samples.tobytes())

        loop = asyncio.get_running_loop()
        start_time = time.time()
        try:
            response = await loop.run_in_executor(
                None, lambda: self.client.recognize(config=config, audio=recognition_audio, timeout=self.timeout)
            )
        except gax_exceptions.DeadlineExceeded as e:
            logger.error("Google STT recognize deadline exceeded")
            raise RuntimeError(f"Google Speech recognize timeout: {e}") from e
        except gax_exceptions.GoogleAPICallError as e:
            logger.error(f"Google STT API call error: {e}")
            raise RuntimeError(f"Google Speech API error: {e}") from e
        processing_time = time.time() - start_time

        texts = []
        segments = []
        for result in response.results:
            alternative = result.alternatives[0]
            texts.append(alternative.transcript.strip())
            if alternative.words:
                segments.append(TranscriptionSegment(
                    start=alternative.words[0].start_time.total_seconds(),
                    end=alternative.words[-1].end_time.total_seconds(),
                    text=alternative.transcript.strip(),
                ))

        text = " ".join(t for t in texts if t)
        logger.debug(f"Google transcription: '{text}' ({processing_time:.3f}s)")
        return TranscriptionResult(
            text=text,
            segments=segments,
            language=language or self.language,
            duration_seconds=len(samples) / sample_rate,
            service=self.service_name,
            processing_time=processing_time,
        )
