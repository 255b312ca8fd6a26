"""Audio-related data models."""

from dataclasses import dataclass
from typing import Optional

import pyaudio


@dataclass
class CaptureFormat:
    """One candidate encoding for microphone capture."""
    mime_type: str
    sample_rate: int
    channels: int = 1
    sample_format: int = pyaudio.paInt16


@dataclass
class AudioFragment:
    """A captured piece of PCM audio."""
    data: bytes
    timestamp: float  # Unix timestamp when the fragment was emitted
    sequence_number: int
    sample_rate: int = 16000
    channels: int = 1
    duration_ms: Optional[int] = None

    def __post_init__(self):
        """Calculate fragment duration if not provided."""
        if self.duration_ms is None:
            # 16-bit audio (2 bytes per sample)
            bytes_per_second = self.sample_rate * self.channels * 2
            self.duration_ms = int(len(self.data) / bytes_per_second * 1000)


@dataclass
class AudioPayload:
    """Encoded audio with its content type, e.g. a synthesized utterance."""
    data: bytes
    content_type: str = "audio/mpeg"


@dataclass
class AudioStats:
    """Audio capture statistics."""
    is_recording: bool
    duration_seconds: float
    sample_rate: int
    block_size: int
    total_fragments: int
