"""VoiceChat: voice capture, transcription and speech playback for character chat."""

__version__ = "0.1.0"
