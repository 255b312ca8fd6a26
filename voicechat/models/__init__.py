"""Data models for the VoiceChat application."""

from .audio import CaptureFormat, AudioFragment, AudioPayload, AudioStats
from .session import RecordingStatus, SessionState, PlaybackState
from .transcription import TranscriptionResult, TranscriptionSegment, SynthesizedAudio
from .scene import BackgroundState
from .api import (
    SpeechRequest,
    TranscriptionResponse,
    ErrorBody,
    Character,
    CharacterOverrides,
)

__all__ = [
    "CaptureFormat",
    "AudioFragment",
    "AudioPayload",
    "AudioStats",
    "RecordingStatus",
    "SessionState",
    "PlaybackState",
    "TranscriptionResult",
    "TranscriptionSegment",
    "SynthesizedAudio",
    "BackgroundState",
    # Wire models
    "SpeechRequest",
    "TranscriptionResponse",
    "ErrorBody",
    "Character",
    "CharacterOverrides",
]
