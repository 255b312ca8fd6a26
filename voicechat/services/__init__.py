"""Services layer for VoiceChat client logic."""

from .recording_session import RecordingSession
from .speech_playback import SpeechPlaybackController
from .transcription_client import TranscriptionClient
from .character_client import CharacterClient

__all__ = [
    "RecordingSession",
    "SpeechPlaybackController",
    "TranscriptionClient",
    "CharacterClient"
]
