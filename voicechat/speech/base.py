"""Abstract base class for speech synthesis backends."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models.transcription import SynthesizedAudio


class AbstractSpeechBackend(ABC):
    """Text-to-speech provider used by the speech endpoint."""

    service_name = "speech"

    @abstractmethod
    async def synthesize(self, text: str, voice: Optional[str] = None,
                         language: Optional[str] = None) -> SynthesizedAudio:
        """Synthesize speakable text.

        Args:
            text: Text with stage directions already removed
            voice: Optional voice identifier, backend default when None
            language: Optional language code

        Returns:
            SynthesizedAudio with the audio bytes and their content type
        """
        pass
