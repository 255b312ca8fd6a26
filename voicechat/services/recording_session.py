"""Recording session state machine: capture, silence detection and transcription handoff."""

import asyncio
import logging
from typing import Optional

from ..audio.buffer import AudioChunkBuffer
from ..audio.capture import AudioCaptureSource
from ..audio.silence import SilenceDetector
from ..errors import CaptureError, PermissionDenied
from ..events import StatePublisher, SESSION_TOPIC
from ..models.audio import AudioFragment
from ..models.session import RecordingStatus, SessionState
from ..models.transcription import TranscriptionResult
from .transcription_client import TranscriptionClient

logger = logging.getLogger(__name__)

TRANSCRIPTION_FAILED_MESSAGE = "Transcription failed"


class RecordingSession:
    """Owns the idle -> recording -> processing -> (idle | error) lifecycle.

    All state lives on the event loop that called `start()`. Capture-thread
    callbacks are posted to that loop and do nothing but call the matching
    transition method.
    """

    def __init__(self,
                 capture: AudioCaptureSource,
                 detector: SilenceDetector,
                 transcription_client: TranscriptionClient,
                 publisher: Optional[StatePublisher] = None):
        """Initialize recording session.

        Args:
            capture: Microphone source
            detector: Silence detector that ends the utterance
            transcription_client: Client for the transcription endpoint
            publisher: Receives a snapshot on every state change
        """
        self.capture = capture
        self.detector = detector
        self.transcription_client = transcription_client
        self.publisher = publisher or StatePublisher(SESSION_TOPIC)

        self.state = SessionState()
        self.buffer = AudioChunkBuffer()

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._starting = False
        self._closed = False
        self._stopped: Optional[asyncio.Event] = None
        self._recorder_stopped: Optional[asyncio.Event] = None

    @property
    def status(self) -> RecordingStatus:
        return self.state.status

    @property
    def error_message(self) -> Optional[str]:
        return self.state.error_message

    @property
    def permission_denied(self) -> bool:
        return self.state.permission_denied

    def _transition(self, status: RecordingStatus, error_message: Optional[str] = None,
                    permission_denied: Optional[bool] = None) -> None:
        previous = self.state.status
        self.state.status = status
        self.state.error_message = error_message
        if permission_denied is not None:
            self.state.permission_denied = permission_denied
        logger.debug(f"Session {previous.value} -> {status.value}")
        self.publisher.publish(self.state)

    # ------------------------------------------------------------------
    # Caller actions
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Acquire the microphone and begin recording.

        No-op while already recording or processing. Capability and
        permission failures end in the `error` state.
        """
        if self._starting or self.status in (RecordingStatus.RECORDING, RecordingStatus.PROCESSING):
            logger.debug(f"Start ignored, session is {self.status.value}")
            return

        self._starting = True
        self._closed = False
        if self.state.error_message is not None:
            self.state.error_message = None
            self.publisher.publish(self.state)
        self._loop = asyncio.get_running_loop()
        self._stopped = asyncio.Event()
        self._recorder_stopped = asyncio.Event()
        self.buffer = AudioChunkBuffer()
        try:
            capture_format = await self._loop.run_in_executor(
                None, self.capture.start, self._handle_data_available, self._handle_recorder_stopped
            )
        except PermissionDenied as e:
            logger.warning(f"Microphone permission denied: {e}")
            self._fail(str(e), permission_denied=True)
            return
        except CaptureError as e:
            logger.warning(f"Microphone unavailable: {e}")
            self._fail(str(e))
            return
        except Exception as e:
            logger.error(f"Microphone access failed: {e}", exc_info=True)
            self._fail(f"Microphone access failed: {e}")
            return
        finally:
            self._starting = False

        if self._closed:
            # Torn down while waiting for the microphone
            self.capture.stop()
            return

        self.buffer.sample_rate = capture_format.sample_rate
        self.buffer.channels = capture_format.channels
        self.detector.start_analysis(self.capture.read_window, self.stop, self._on_analysis_error)
        self._transition(RecordingStatus.RECORDING)
        logger.info("Recording started")

    def stop(self) -> None:
        """End the utterance: explicit caller stop or silence timeout."""
        if self.status != RecordingStatus.RECORDING:
            return
        self.detector.stop_analysis()
        self._transition(RecordingStatus.PROCESSING)
        self._stopped.set()
        # The capture thread flushes its last fragment and then reports back
        self.capture.stop()
        logger.info("Recording stopped, processing")

    async def wait_stopped(self) -> None:
        """Wait until the current recording stops (explicitly, on silence, or on failure)."""
        if self._stopped is not None:
            await self._stopped.wait()

    async def transcribe(self, language: Optional[str] = None) -> TranscriptionResult:
        """Send the captured utterance for transcription.

        Args:
            language: Optional language hint

        Returns:
            Recognized text; empty when nothing was captured or the request failed
        """
        if self.status == RecordingStatus.RECORDING:
            self.stop()
        if self._recorder_stopped is not None and self.status == RecordingStatus.PROCESSING:
            await self._recorder_stopped.wait()

        if self.buffer.is_empty():
            logger.info("No audio captured, skipping transcription")
            if self.status == RecordingStatus.PROCESSING:
                self._transition(RecordingStatus.IDLE)
            return TranscriptionResult.empty()

        payload = self.buffer.to_wav()
        logger.info(f"Transcribing {self.buffer.duration_seconds:.2f}s of audio "
                    f"({len(self.buffer)} fragments)")
        try:
            result = await self.transcription_client.transcribe(payload, self.capture.mime_type, language)
        except Exception as e:
            logger.error(f"Transcription failed: {e}")
            if self._closed:
                return TranscriptionResult.empty()
            self._transition(RecordingStatus.ERROR, TRANSCRIPTION_FAILED_MESSAGE)
            return TranscriptionResult.empty()
        finally:
            # close() already cleared the buffer when it ran during the request
            if not self._closed:
                self.buffer.clear()

        if self._closed:
            logger.debug("Session closed during transcription")
            return result
        self._transition(RecordingStatus.IDLE)
        return result

    async def record_utterance(self, language: Optional[str] = None) -> TranscriptionResult:
        """Start, wait for an explicit or silence stop, and transcribe."""
        await self.start()
        if self.status != RecordingStatus.RECORDING:
            return TranscriptionResult.empty()
        await self.wait_stopped()
        if self.status != RecordingStatus.PROCESSING:
            return TranscriptionResult.empty()
        return await self.transcribe(language)

    def close(self) -> None:
        """Tear down regardless of state: no timers, analysis or capture survive."""
        self._closed = True
        self.detector.stop_analysis()
        self.capture.stop()
        if not self.buffer.is_empty():
            self.buffer.clear()
        if self._stopped is not None:
            self._stopped.set()
        if self._recorder_stopped is not None:
            self._recorder_stopped.set()
        if self.status in (RecordingStatus.RECORDING, RecordingStatus.PROCESSING):
            self._transition(RecordingStatus.IDLE)
        logger.debug("Recording session closed")

    async def __aenter__(self) -> "RecordingSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Capture thread events, posted to the loop
    # ------------------------------------------------------------------

    def _handle_data_available(self, fragment: AudioFragment) -> None:
        self._post(self._on_data_available, fragment)

    def _handle_recorder_stopped(self, error: Optional[Exception]) -> None:
        self._post(self._on_recorder_stopped, error)

    def _post(self, callback, *args) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(callback, *args)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _on_data_available(self, fragment: AudioFragment) -> None:
        if self._closed:
            return
        if self._starting or self.status in (RecordingStatus.RECORDING, RecordingStatus.PROCESSING):
            self.buffer.append(fragment)

    def _on_recorder_stopped(self, error: Optional[Exception]) -> None:
        self.detector.stop_analysis()
        if self._recorder_stopped is not None:
            self._recorder_stopped.set()
        if error is None:
            if self.status == RecordingStatus.RECORDING:
                # Capture ended without a stop request
                self.stop()
            return
        if self.status == RecordingStatus.RECORDING:
            self._fail(f"Microphone capture failed: {error}")
        else:
            logger.warning(f"Capture reported an error after stop: {error}")

    def _on_analysis_error(self, error: Exception) -> None:
        self.capture.stop()
        self._fail(f"Audio analysis failed: {error}")

    def _fail(self, message: str, permission_denied: bool = False) -> None:
        self.detector.stop_analysis()
        if not self.buffer.is_empty():
            self.buffer.clear()
        if self._stopped is not None:
            self._stopped.set()
        if self._recorder_stopped is not None and not self.capture.is_recording:
            self._recorder_stopped.set()
        self._transition(RecordingStatus.ERROR, message, True if permission_denied else None)
