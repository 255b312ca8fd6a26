"""Transcription and speech HTTP endpoints."""

from .app import build_app, handle_speech, handle_transcription

__all__ = [
    "build_app",
    "handle_speech",
    "handle_transcription",
]
