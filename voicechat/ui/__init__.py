"""Console output for the VoiceChat CLI."""

from .console import VoiceConsole

__all__ = ["VoiceConsole"]
