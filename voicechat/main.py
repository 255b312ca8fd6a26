"""Main application entry point for VoiceChat."""

import sys
import asyncio
import argparse
import logging
import threading
from pathlib import Path
from typing import Optional

import aiohttp
from aiohttp import web

from . import __version__
from .audio.capture import AudioCaptureSource
from .audio.playback import PyAudioSink
from .audio.silence import SilenceDetector
from .config import VoiceChatConfig
from .models.session import RecordingStatus
from .server import build_app
from .services.character_client import CharacterClient
from .services.recording_session import RecordingSession
from .services.speech_playback import SpeechPlaybackController
from .services.transcription_client import TranscriptionClient
from .speech import create_speech_backend
from .transcription import create_transcription_backend
from .ui.console import VoiceConsole

logger = logging.getLogger(__name__)


class VoiceChatApp:
    """Wires configured components together for the CLI commands."""

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        self.config = VoiceChatConfig(config_path)
        setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))

    def build_session(self, http: aiohttp.ClientSession) -> RecordingSession:
        silence = self.config.get_silence_settings()
        capture = AudioCaptureSource(
            formats=self.config.get_capture_formats(),
            timeslice_ms=self.config.get('audio.timeslice_ms', 200),
            block_size=self.config.get('audio.block_size', 256),
            input_device_index=self.config.get('audio.input_device_index'),
        )
        detector = SilenceDetector(
            threshold=silence["threshold"],
            window_ms=silence["window_ms"],
            tick_ms=silence["tick_ms"],
        )
        client = TranscriptionClient(self.config.get_endpoint('transcription'), session=http)
        logger.info(f"Silence settings: {silence}")
        return RecordingSession(capture, detector, client)

    def build_playback(self, http: aiohttp.ClientSession) -> SpeechPlaybackController:
        sink = PyAudioSink(
            require_user_gesture=self.config.get('playback.require_user_gesture', False),
            frames_per_buffer=self.config.get('playback.frames_per_buffer', 1024),
        )
        return SpeechPlaybackController(
            self.config.get_endpoint('speech'),
            sink=sink,
            session=http,
            enabled=self.config.get('speech.enabled', True),
        )

    def build_character_client(self, http: aiohttp.ClientSession) -> CharacterClient:
        return CharacterClient(
            self.config.get('characters.base_url', 'http://127.0.0.1:3000/api/characters'),
            auth_token=self.config.get_api_key('characters.auth_token', 'VOICECHAT_AUTH_TOKEN'),
            session=http,
        )

    def serve(self) -> None:
        host = self.config.get('server.host', '127.0.0.1')
        port = self.config.get('server.port', 8080)
        app = build_app(
            create_transcription_backend(self.config),
            create_speech_backend(self.config),
            transcription_path=self.config.get('endpoints.transcription_path', '/api/transcription'),
            speech_path=self.config.get('endpoints.speech_path', '/api/speech'),
        )
        logger.info(f"Serving voice endpoints on {host}:{port}")
        web.run_app(app, host=host, port=port)

    async def talk(self, view: VoiceConsole, language: Optional[str], speak_back: bool) -> int:
        async with aiohttp.ClientSession() as http:
            async with self.build_session(http) as session:
                await session.start()
                if session.status != RecordingStatus.RECORDING:
                    return 1

                _stop_on_enter(asyncio.get_running_loop(), session.stop)
                await session.wait_stopped()
                result = await session.transcribe(language)
                view.show_transcript(result)
                if session.status == RecordingStatus.ERROR:
                    return 1

            if speak_back and result.text:
                await self._speak(http, view, result.text, None, language)
        return 0

    async def say(self, view: VoiceConsole, text: str, voice: Optional[str], language: Optional[str]) -> int:
        async with aiohttp.ClientSession() as http:
            await self._speak(http, view, text, voice, language)
        return 0

    async def characters(self, view: VoiceConsole) -> int:
        async with aiohttp.ClientSession() as http:
            characters = await self.build_character_client(http).list_characters()
        view.show_characters(characters)
        return 0

    async def _speak(self, http: aiohttp.ClientSession, view: VoiceConsole,
                     text: str, voice: Optional[str], language: Optional[str]) -> None:
        controller = self.build_playback(http)
        try:
            await controller.speak(text, voice or self.config.get('speech.voice'), language)
            if controller.has_autoplay_error:
                await asyncio.get_running_loop().run_in_executor(None, view.prompt_replay)
                await controller.play_stored_audio()
            await controller.wait_until_done()
        finally:
            controller.stop()


def _stop_on_enter(loop: asyncio.AbstractEventLoop, stop) -> None:
    """Call `stop` on the loop when the user presses Enter."""
    def wait_for_enter():
        sys.stdin.readline()
        if not loop.is_closed():
            loop.call_soon_threadsafe(stop)

    thread = threading.Thread(target=wait_for_enter, daemon=True)
    thread.name = "EnterKeyThread"
    thread.start()


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/voicechat.log')
    console_output = config.get('logging.console_output', True)

    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("VoiceChat starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="VoiceChat - talk to characters with your voice",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: looks for voicechat.yaml)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: logging.level from config, else INFO)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"VoiceChat v{__version__}"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("serve", help="Run the transcription and speech endpoints")

    talk = commands.add_parser("talk", help="Record one utterance and print the transcript")
    talk.add_argument("--language", type=str, help="Language hint for transcription (e.g. en)")
    talk.add_argument("--speak-back", action="store_true", help="Speak the transcript back")

    say = commands.add_parser("say", help="Synthesize and play text")
    say.add_argument("text", type=str, help="Text to speak")
    say.add_argument("--voice", type=str, help="Voice identifier (overrides speech.voice)")
    say.add_argument("--language", type=str, help="Language code for synthesis")

    commands.add_parser("characters", help="List characters in the character store")

    return parser


def main(argv=None) -> None:
    """Main entry point for VoiceChat."""
    args = build_parser().parse_args(argv)

    try:
        app = VoiceChatApp(args.config, args.log_level)
        if args.command == "serve":
            app.serve()
            return

        view = VoiceConsole()
        if args.command == "talk":
            exit_code = asyncio.run(app.talk(view, args.language, args.speak_back))
        elif args.command == "characters":
            exit_code = asyncio.run(app.characters(view))
        else:
            exit_code = asyncio.run(app.say(view, args.text, args.voice, args.language))
        view.close()
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Configuration error: {e}")
        sys.exit(2)
    except Exception as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
