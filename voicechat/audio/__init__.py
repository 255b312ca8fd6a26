"""Audio capture, analysis and playback module."""

from .capture import AudioCaptureSource
from .buffer import AudioChunkBuffer
from .silence import SilenceDetector, SilenceTimer, rms_loudness
from .playback import PyAudioSink, PyAudioPlayback

__all__ = [
    'AudioCaptureSource',
    'AudioChunkBuffer',
    'SilenceDetector',
    'SilenceTimer',
    'rms_loudness',
    'PyAudioSink',
    'PyAudioPlayback'
]
