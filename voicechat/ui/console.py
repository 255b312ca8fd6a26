"""Rich console view of recording and playback state."""

import logging
from typing import Optional, List

from pubsub import pub
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..events import SESSION_TOPIC, PLAYBACK_TOPIC
from ..models.session import SessionState, PlaybackState, RecordingStatus
from ..models.api import Character
from ..models.transcription import TranscriptionResult

logger = logging.getLogger(__name__)

STATUS_LINES = {
    RecordingStatus.IDLE: ("⏹️  Idle", "yellow"),
    RecordingStatus.RECORDING: ("🔴 Listening... (press Enter to stop)", "bold red"),
    RecordingStatus.PROCESSING: ("⏳ Transcribing...", "blue"),
    RecordingStatus.ERROR: ("❌ Error", "bold red"),
}


class VoiceConsole:
    """Prints session and playback state changes as they are published."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.last_session: Optional[SessionState] = None
        self.last_playback: Optional[PlaybackState] = None
        pub.subscribe(self.on_session_state, SESSION_TOPIC)
        pub.subscribe(self.on_playback_state, PLAYBACK_TOPIC)
        logger.debug(f"VoiceConsole subscribed to {SESSION_TOPIC} and {PLAYBACK_TOPIC}")

    def on_session_state(self, state: SessionState) -> None:
        previous = self.last_session
        self.last_session = state
        if previous is not None and previous.status == state.status:
            return

        text, style = STATUS_LINES[state.status]
        if state.status == RecordingStatus.ERROR and state.error_message:
            text = f"{text}: {state.error_message}"
        self.console.print(text, style=style)
        if state.permission_denied:
            self.console.print("Check the microphone permissions of this terminal and try again.", style="dim")

    def on_playback_state(self, state: PlaybackState) -> None:
        previous = self.last_playback
        self.last_playback = state
        if state.has_autoplay_error and not (previous and previous.has_autoplay_error):
            self.console.print("🔇 Playback blocked until you ask for it.", style="yellow")
        elif state.is_speaking and not (previous and previous.is_speaking):
            self.console.print("🔊 Speaking...", style="green")

    def show_transcript(self, result: TranscriptionResult) -> None:
        if not result.text:
            self.console.print("📝 (no speech recognized)", style="dim")
            return

        subtitle = result.language or None
        self.console.print(Panel(result.text, title="📝 Transcript", subtitle=subtitle, expand=False))
        for warning in result.warnings:
            self.console.print(f"⚠️  {warning}", style="yellow")

    def show_characters(self, characters: List[Character]) -> None:
        if not characters:
            self.console.print("No characters yet.", style="dim")
            return

        table = Table(title="Characters")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="bold")
        table.add_column("Description")
        for character in characters:
            table.add_row(character.id, character.name, character.description)
        self.console.print(table)

    def prompt_replay(self) -> None:
        self.console.input("Press [bold green]Enter[/bold green] to play the response ")

    def close(self) -> None:
        try:
            pub.unsubscribe(self.on_session_state, SESSION_TOPIC)
            pub.unsubscribe(self.on_playback_state, PLAYBACK_TOPIC)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")
