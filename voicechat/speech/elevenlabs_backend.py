"""ElevenLabs text-to-speech backend."""

import io
import time
import logging
from typing import Optional, Dict, Any

import aiohttp
import numpy as np
from scipy.io import wavfile

from .base import AbstractSpeechBackend
from ..models.transcription import SynthesizedAudio

logger = logging.getLogger(__name__)

ELEVENLABS_BASE_URL = "https://api.elevenlabs.io/v1"
DEFAULT_VOICE_ID = "jZPrG0t6FOc6pSrEustX"
DEFAULT_MODEL = "eleven_turbo_v2_5"


def pcm_to_wav(pcm: bytes, sample_rate: int) -> bytes:
    """Wrap raw 16-bit mono PCM in a WAV container."""
    samples = np.frombuffer(pcm[:len(pcm) - len(pcm) % 2], dtype=np.int16)
    out = io.BytesIO()
    wavfile.write(out, sample_rate, samples)
    return out.getvalue()


class ElevenLabsSpeechBackend(AbstractSpeechBackend):
    """Synthesizes speech with the ElevenLabs API."""

    service_name = "ElevenLabs"

    def __init__(self,
                 api_key: str,
                 voice_id: str = DEFAULT_VOICE_ID,
                 model: str = DEFAULT_MODEL,
                 output_format: str = "mp3_44100_128",
                 base_url: str = ELEVENLABS_BASE_URL):
        """Initialize ElevenLabs backend.

        Args:
            api_key: ElevenLabs API key
            voice_id: Default voice when a request names none
            model: Synthesis model id
            output_format: ElevenLabs output format, 'mp3_*' or 'pcm_<rate>'
            base_url: API root
        """
        if not api_key:
            raise ValueError("ElevenLabs API key is required")
        if not output_format.startswith(("mp3_", "pcm_")):
            raise ValueError(f"Unsupported ElevenLabs output format: {output_format}")
        self.api_key = api_key
        self.voice_id = voice_id
        self.model = model
        self.output_format = output_format
        self.base_url = base_url.rstrip('/')

        logger.info(f"ElevenLabsSpeechBackend initialized with model: {model}, format: {output_format}")

    async def synthesize(self, text: str, voice: Optional[str] = None,
                         language: Optional[str] = None) -> SynthesizedAudio:
        voice_id = voice or self.voice_id
        url = f"{self.base_url}/text-to-speech/{voice_id}"
        headers = {
            "xi-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        data: Dict[str, Any] = {"text": text, "model_id": self.model}
        if language:
            data["language_code"] = language

        start_time = time.time()
        async with aiohttp.ClientSession() as session:
            async with session.post(url, headers=headers, json=data,
                                    params={"output_format": self.output_format}) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise RuntimeError(f"ElevenLabs API error: {response.status} - {error_text}")
                audio = await response.read()

        logger.debug(f"ElevenLabs synthesized {len(audio)} bytes in {time.time() - start_time:.3f}s")
        if self.output_format.startswith("pcm_"):
            sample_rate = int(self.output_format.split("_")[1])
            return SynthesizedAudio(data=pcm_to_wav(audio, sample_rate) if audio else b"",
                                    content_type="audio/wav")
        return SynthesizedAudio(data=audio, content_type="audio/mpeg")
