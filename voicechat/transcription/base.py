"""Abstract base class for transcription backends."""

from abc import ABC, abstractmethod
from typing import Optional
import logging

from ..models.transcription import TranscriptionResult

logger = logging.getLogger(__name__)


class AbstractTranscriptionBackend(ABC):
    """Speech-to-text provider used by the transcription endpoint."""

    service_name = "transcription"

    @abstractmethod
    async def transcribe(self, audio: bytes, mime_type: str,
                         language: Optional[str] = None) -> TranscriptionResult:
        """Transcribe one audio file.

        Args:
            audio: Encoded audio file contents
            mime_type: Content type of `audio`
            language: Optional language hint

        Returns:
            TranscriptionResult with text and timing metadata
        """
        pass

    def initialize(self) -> bool:
        """Initialize backend resources and verify configuration.

        Returns:
            True if initialization successful, False otherwise
        """
        return True

    async def cleanup(self) -> None:
        """Clean up backend resources."""
        pass
