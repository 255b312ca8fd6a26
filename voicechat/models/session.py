"""Recording session and playback state models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .audio import AudioPayload


class RecordingStatus(Enum):
    """Lifecycle of a recording session."""
    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"
    ERROR = "error"


@dataclass
class SessionState:
    """Observable state of a recording session."""
    status: RecordingStatus = RecordingStatus.IDLE
    error_message: Optional[str] = None
    permission_denied: bool = False


@dataclass
class PlaybackState:
    """Observable state of the speech playback controller."""
    is_speaking: bool = False
    has_autoplay_error: bool = False
    stored_audio: Optional[AudioPayload] = None
