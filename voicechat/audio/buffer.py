"""Per-session audio buffer that turns captured fragments into one payload."""

import io
import logging
from typing import List

import numpy as np
from scipy.io import wavfile

from ..models.audio import AudioFragment

logger = logging.getLogger(__name__)


class AudioChunkBuffer:
    """Ordered fragments captured during one recording session.

    Owned by the session and only touched from its event loop.
    """

    def __init__(self, sample_rate: int = 16000, channels: int = 1):
        """Initialize an empty buffer.

        Args:
            sample_rate: Sample rate of the fragments that will be appended
            channels: Number of interleaved channels
        """
        self.sample_rate = sample_rate
        self.channels = channels
        self.fragments: List[AudioFragment] = []
        self.total_bytes = 0
        self.clear_count = 0

    def __len__(self) -> int:
        return len(self.fragments)

    def is_empty(self) -> bool:
        return not self.fragments

    def append(self, fragment: AudioFragment) -> None:
        """Add a fragment; empty fragments are ignored."""
        if not fragment.data:
            return
        self.fragments.append(fragment)
        self.total_bytes += len(fragment.data)
        logger.debug(f"Buffered fragment #{fragment.sequence_number}: {len(fragment.data)} bytes, "
                     f"{len(self.fragments)} fragments ({self.total_bytes} bytes)")

    @property
    def duration_seconds(self) -> float:
        bytes_per_second = self.sample_rate * self.channels * 2  # 16-bit audio
        return self.total_bytes / bytes_per_second

    def to_pcm(self) -> np.ndarray:
        """All buffered audio as int16 samples, shaped (frames, channels) when multichannel."""
        samples = np.frombuffer(b''.join(f.data for f in self.fragments), dtype=np.int16)
        if self.channels > 1:
            samples = samples[:len(samples) - len(samples) % self.channels].reshape(-1, self.channels)
        return samples

    def to_wav(self) -> bytes:
        """Package the buffered audio as a single WAV file."""
        out = io.BytesIO()
        wavfile.write(out, self.sample_rate, self.to_pcm())
        return out.getvalue()

    def clear(self) -> None:
        """Drop all fragments."""
        self.fragments.clear()
        self.total_bytes = 0
        self.clear_count += 1
        logger.debug("Audio buffer cleared")
