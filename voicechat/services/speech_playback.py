"""Speech playback controller: synthesis request, playback lifecycle, blocked-playback recovery."""

import asyncio
import logging
from typing import Optional, Dict, Any

import aiohttp

from ..audio.playback import PyAudioSink, PyAudioPlayback
from ..errors import AutoplayBlocked, SynthesisFailed
from ..events import StatePublisher, PLAYBACK_TOPIC
from ..models.audio import AudioPayload
from ..models.session import PlaybackState

logger = logging.getLogger(__name__)


class SpeechPlaybackController:
    """Speaks text through the synthesis endpoint, one utterance at a time.

    When the sink refuses unsolicited playback, the synthesized audio is kept
    as `stored_audio` until `play_stored_audio()` replays it from a user action.
    """

    def __init__(self,
                 endpoint_url: str,
                 sink: Optional[PyAudioSink] = None,
                 session: Optional[aiohttp.ClientSession] = None,
                 publisher: Optional[StatePublisher] = None,
                 enabled: bool = True):
        """Initialize playback controller.

        Args:
            endpoint_url: Absolute URL of POST /api/speech
            sink: Audio output
            session: Shared aiohttp session; a short-lived one is used per call when None
            publisher: Receives a snapshot on every state change
            enabled: Whether speak() does anything
        """
        self.endpoint_url = endpoint_url
        self.sink = sink or PyAudioSink()
        self.enabled = enabled
        self.publisher = publisher or StatePublisher(PLAYBACK_TOPIC)
        self.state = PlaybackState()

        self._session = session
        self._playback: Optional[PyAudioPlayback] = None
        self._finished: Optional[asyncio.Event] = None
        self._generation = 0

    @property
    def is_speaking(self) -> bool:
        return self.state.is_speaking

    @property
    def has_autoplay_error(self) -> bool:
        return self.state.has_autoplay_error

    @property
    def stored_audio(self) -> Optional[AudioPayload]:
        return self.state.stored_audio

    def set_enabled(self, value: bool) -> None:
        self.enabled = value
        if not value:
            self.stop()

    def _update(self, **changes) -> None:
        for name, value in changes.items():
            setattr(self.state, name, value)
        self.publisher.publish(self.state)

    async def speak(self, text: str, voice: Optional[str] = None, language: Optional[str] = None) -> None:
        """Synthesize and play `text`, cancelling whatever was playing.

        Args:
            text: Text to speak; blank text is ignored
            voice: Optional voice identifier
            language: Optional language code
        """
        if not self.enabled:
            return
        trimmed = text.strip()
        if not trimmed:
            return

        self.stop()
        generation = self._generation
        self._update(is_speaking=True)

        try:
            payload = await self._synthesize(trimmed, voice, language)
        except (SynthesisFailed, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"TTS play error: {e}")
            if generation == self._generation:
                self._update(is_speaking=False)
            return
        except Exception as e:
            logger.error(f"Unexpected TTS error: {e}", exc_info=True)
            if generation == self._generation:
                self._update(is_speaking=False)
            return

        if generation != self._generation:
            logger.debug("Speak request superseded, discarding synthesized audio")
            return

        self.state.stored_audio = payload
        await self._play(payload, generation, user_initiated=False)

    async def play_stored_audio(self) -> None:
        """Replay audio kept after blocked playback; no-op when nothing is kept."""
        payload = self.state.stored_audio
        if payload is None:
            return

        self._release_playback()
        self._generation += 1
        self._update(is_speaking=True)
        await self._play(payload, self._generation, user_initiated=True)

    def stop(self) -> None:
        """Halt playback, release resources and drop kept audio. Always safe."""
        self._generation += 1
        self._release_playback()
        self.state.stored_audio = None
        self._update(is_speaking=False, has_autoplay_error=False)

    async def wait_until_done(self) -> None:
        """Wait for the active playback, if any, to end."""
        if self._playback is not None and self._finished is not None:
            await self._finished.wait()

    async def _synthesize(self, text: str, voice: Optional[str], language: Optional[str]) -> AudioPayload:
        body: Dict[str, Any] = {"text": text}
        if voice:
            body["voice"] = voice
        if language:
            body["language"] = language

        if self._session is not None:
            return await self._post(self._session, body)
        async with aiohttp.ClientSession() as session:
            return await self._post(session, body)

    async def _post(self, session: aiohttp.ClientSession, body: Dict[str, Any]) -> AudioPayload:
        async with session.post(self.endpoint_url, json=body) as response:
            if not 200 <= response.status < 300:
                detail = await response.text(errors="replace")
                logger.error(f"TTS server error: {detail}")
                raise SynthesisFailed(response.status, detail)

            content_type = response.headers.get('content-type', 'audio/mpeg')
            if not content_type.startswith('audio/'):
                # Not audio, most likely a misconfigured endpoint
                detail = await response.text(errors="replace")
                logger.error(f"TTS non-audio response: {detail}")
                raise SynthesisFailed(response.status, f"non-audio response ({content_type})")

            data = await response.read()
        return AudioPayload(data=data, content_type=content_type)

    async def _play(self, payload: AudioPayload, generation: int, user_initiated: bool) -> None:
        try:
            playback = self.sink.open(payload)
        except Exception as e:
            logger.error(f"TTS play error: {e}")
            self._reset(keep_stored=user_initiated)
            return

        self._playback = playback
        self._finished = asyncio.Event()
        try:
            await playback.play(lambda: self._on_playback_ended(playback), user_initiated=user_initiated)
        except AutoplayBlocked:
            logger.warning("Autoplay blocked by playback policy. Audio stored for manual playback.")
            self._release_playback()
            if generation == self._generation:
                self._update(is_speaking=False, has_autoplay_error=True)
            return
        except Exception as e:
            logger.error(f"{'Stored audio' if user_initiated else 'TTS'} play error: {e}")
            self._release_playback()
            if generation == self._generation:
                self._reset(keep_stored=user_initiated)
            return

        if generation != self._generation and playback is self._playback:
            self._release_playback()

    def _on_playback_ended(self, playback: PyAudioPlayback) -> None:
        if playback is not self._playback:
            return
        self._release_playback()
        self.state.stored_audio = None
        self._update(is_speaking=False, has_autoplay_error=False)
        logger.debug("Playback finished")

    def _reset(self, keep_stored: bool = False) -> None:
        if not keep_stored:
            self.state.stored_audio = None
        self._update(is_speaking=False)

    def _release_playback(self) -> None:
        playback, self._playback = self._playback, None
        if playback is not None:
            playback.release()
        if self._finished is not None:
            self._finished.set()
