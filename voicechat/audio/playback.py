"""Audio output: decodes synthesized payloads and plays them through PyAudio."""

import io
import asyncio
import logging
from threading import Thread, Event, current_thread
from typing import Optional, Callable

import numpy as np
import pyaudio
import soundfile as sf

from ..errors import AutoplayBlocked, PlaybackError
from ..models.audio import AudioPayload

logger = logging.getLogger(__name__)


class PyAudioPlayback:
    """One decoded utterance bound to an output stream; the transient playback resource."""

    def __init__(self, sink: "PyAudioSink", pcm: np.ndarray, sample_rate: int):
        self._sink = sink
        self.pcm: Optional[np.ndarray] = pcm
        self.sample_rate = sample_rate
        self.channels = pcm.shape[1]

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None
        self.playback_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_playing = False
        self.released = False

    @property
    def duration_seconds(self) -> float:
        return 0.0 if self.pcm is None else len(self.pcm) / self.sample_rate

    async def play(self, on_ended: Callable[[], None], user_initiated: bool = False) -> None:
        """Start playback; returns once audio is flowing.

        Args:
            on_ended: Called on the event loop when playback completes naturally
            user_initiated: The play request comes straight from a user action

        Raises:
            AutoplayBlocked: The playback policy requires a user gesture first
            PlaybackError: The output stream could not be opened
        """
        if self.released:
            raise PlaybackError("Playback resource already released")
        self._sink.check_policy(user_initiated)

        loop = asyncio.get_running_loop()
        self.pyaudio_instance = pyaudio.PyAudio()
        try:
            self.stream = self.pyaudio_instance.open(
                format=pyaudio.paInt16,
                channels=self.channels,
                rate=self.sample_rate,
                output=True,
                frames_per_buffer=self._sink.frames_per_buffer,
            )
        except (IOError, OSError) as e:
            self._close()
            raise PlaybackError(f"Could not open audio output: {e}") from e

        self.stop_event.clear()
        self.is_playing = True
        self.playback_thread = Thread(target=self._write_continuously, args=(loop, on_ended), daemon=True)
        self.playback_thread.name = "AudioPlaybackThread"
        self.playback_thread.start()
        logger.debug(f"Playback started: {self.duration_seconds:.2f}s at {self.sample_rate}Hz")

    def _write_continuously(self, loop: asyncio.AbstractEventLoop, on_ended: Callable[[], None]) -> None:
        """Internal method: write PCM to the output stream in background thread."""
        step = self._sink.frames_per_buffer
        completed = False
        try:
            for offset in range(0, len(self.pcm), step):
                if self.stop_event.is_set():
                    break
                self.stream.write(self.pcm[offset:offset + step].tobytes())
            else:
                completed = True
        except Exception as e:
            logger.error(f"Audio output failed: {e}")
        finally:
            self.is_playing = False
        if completed and not loop.is_closed():
            loop.call_soon_threadsafe(on_ended)

    def stop(self) -> None:
        """Halt playback and close the output stream. Safe when idle."""
        self.stop_event.set()
        thread = self.playback_thread
        if thread and thread.is_alive() and thread is not current_thread():
            thread.join(timeout=2.0)
            if thread.is_alive():
                logger.warning("Playback thread did not stop cleanly")
        self._close()

    def release(self) -> None:
        """Stop and drop the decoded audio."""
        if self.released:
            return
        self.stop()
        self.pcm = None
        self.released = True

    def _close(self) -> None:
        if self.stream is not None:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except Exception as e:
                logger.warning(f"Error closing output stream: {e}")
            self.stream = None
        if self.pyaudio_instance is not None:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None


class PyAudioSink:
    """Opens playback resources and applies the playback policy.

    With `require_user_gesture`, unsolicited playback is refused until a
    user-initiated play has happened once (sticky activation).
    """

    def __init__(self, require_user_gesture: bool = False, frames_per_buffer: int = 1024):
        self.require_user_gesture = require_user_gesture
        self.frames_per_buffer = frames_per_buffer
        self.user_activated = False

    def activate(self) -> None:
        """Record a user gesture; later unsolicited playback is allowed."""
        self.user_activated = True

    def check_policy(self, user_initiated: bool) -> None:
        if user_initiated:
            self.activate()
            return
        if self.require_user_gesture and not self.user_activated:
            raise AutoplayBlocked("Playback requires a user gesture")

    def open(self, payload: AudioPayload) -> PyAudioPlayback:
        """Decode a payload into a playback resource.

        Raises:
            PlaybackError: The payload cannot be decoded
        """
        try:
            pcm, sample_rate = sf.read(io.BytesIO(payload.data), dtype='int16', always_2d=True)
        except RuntimeError as e:
            raise PlaybackError(f"Could not decode {payload.content_type} audio: {e}") from e
        return PyAudioPlayback(self, pcm, sample_rate)
