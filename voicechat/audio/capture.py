"""Microphone capture source with fixed-cadence fragment emission."""

import time
import logging
from threading import Thread, Event, Lock, current_thread
from typing import Optional, List, Callable
from datetime import datetime

import numpy as np
import pyaudio

from ..errors import CaptureError, PermissionDenied, UnsupportedEnvironment, NoSupportedFormat
from ..models.audio import AudioFragment, AudioStats, CaptureFormat

logger = logging.getLogger(__name__)

# PortAudio error codes that mean the platform refused the input device
PA_INVALID_DEVICE = -9996
PA_DEVICE_UNAVAILABLE = -9985
ACCESS_REFUSED_CODES = (PA_INVALID_DEVICE, PA_DEVICE_UNAVAILABLE)

DEFAULT_FORMATS = [
    CaptureFormat(mime_type="audio/wav", sample_rate=16000),
    CaptureFormat(mime_type="audio/wav", sample_rate=48000),
    CaptureFormat(mime_type="audio/wav", sample_rate=44100),
]


def _portaudio_error_code(error: Exception) -> Optional[int]:
    """PyAudio raises IOError(text, code); pull the numeric code out."""
    for arg in error.args:
        if isinstance(arg, int):
            return arg
    return None


class AudioCaptureSource:
    """Continuous microphone capture emitting fragments every `timeslice_ms`."""

    def __init__(
        self,
        formats: Optional[List[CaptureFormat]] = None,
        timeslice_ms: int = 200,
        block_size: int = 256,
        analysis_window: int = 2048,
        input_device_index: Optional[int] = None,
    ):
        """Initialize capture source.

        Args:
            formats: Prioritized capture formats; the first one the input
                     device accepts is used
            timeslice_ms: Amount of audio per emitted fragment
            block_size: Frames per stream read; keeps the analysis window fresh
            analysis_window: Number of most recent samples exposed to analysis
            input_device_index: PortAudio device index, None for the default device
        """
        self.formats = list(formats or DEFAULT_FORMATS)
        self.timeslice_ms = timeslice_ms
        self.block_size = block_size
        self.analysis_window = analysis_window
        self.input_device_index = input_device_index

        self.format: Optional[CaptureFormat] = None
        self.on_data: Optional[Callable[[AudioFragment], None]] = None
        self.on_stop: Optional[Callable[[Optional[Exception]], None]] = None

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False

        # PyAudio handles
        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None

        # Live window for the silence detector
        self._window = np.zeros(analysis_window, dtype=np.float32)
        self._window_lock = Lock()

        # Statistics tracking
        self.start_time: Optional[datetime] = None
        self.total_fragments = 0

    @property
    def mime_type(self) -> str:
        return self.format.mime_type if self.format else "audio/wav"

    @property
    def sample_rate(self) -> int:
        return self.format.sample_rate if self.format else self.formats[0].sample_rate

    @property
    def channels(self) -> int:
        return self.format.channels if self.format else self.formats[0].channels

    def start(self,
              on_data: Callable[[AudioFragment], None],
              on_stop: Optional[Callable[[Optional[Exception]], None]] = None) -> CaptureFormat:
        """Acquire the microphone and start emitting fragments.

        Args:
            on_data: Called from the capture thread with each fragment
            on_stop: Called from the capture thread once the stream is released,
                     with the exception that ended capture, if any

        Returns:
            The capture format that was selected

        Raises:
            UnsupportedEnvironment: No host API or no input device
            PermissionDenied: The input device was refused
            NoSupportedFormat: No candidate format is accepted
            CaptureError: Any other failure while opening the stream
        """
        if self.is_recording:
            logger.warning("Capture already in progress")
            return self.format

        pa = pyaudio.PyAudio()
        try:
            device_index = self._check_environment(pa)
            capture_format = self._select_format(pa, device_index)
            stream = self._open_stream(pa, capture_format, device_index)
        except Exception:
            pa.terminate()
            raise

        self.pyaudio_instance = pa
        self.stream = stream
        self.format = capture_format
        self.on_data = on_data
        self.on_stop = on_stop
        with self._window_lock:
            self._window[:] = 0.0

        logger.info(f"Starting audio capture: {capture_format.mime_type} "
                    f"{capture_format.sample_rate}Hz, {self.timeslice_ms}ms fragments")
        self.stop_event.clear()
        self.start_time = datetime.now()
        self.total_fragments = 0

        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.is_recording = True
        self.recording_thread.start()
        return capture_format

    def stop(self) -> None:
        """Stop capture; the thread flushes the last fragment and releases the stream.

        Calling it while inactive is a no-op.
        """
        if not self.is_recording:
            return

        logger.info("Stopping audio capture")
        self.is_recording = False
        self.stop_event.set()

        thread = self.recording_thread
        if thread and thread.is_alive() and thread is not current_thread():
            thread.join(timeout=2.0)
            if thread.is_alive():
                logger.warning("Capture thread did not stop cleanly")

        logger.info(f"Capture stopped. Total fragments: {self.total_fragments}")

    def read_window(self) -> np.ndarray:
        """Latest `analysis_window` samples as float32 in -1..1."""
        with self._window_lock:
            return self._window.copy()

    def _check_environment(self, pa: pyaudio.PyAudio) -> Optional[int]:
        if pa.get_host_api_count() == 0:
            raise UnsupportedEnvironment("Microphone is not supported on this system: no audio host API.")

        has_input = any(
            pa.get_device_info_by_index(i).get('maxInputChannels', 0) > 0
            for i in range(pa.get_device_count())
        )
        if not has_input:
            raise UnsupportedEnvironment("Recording is not supported on this system: no input device found.")

        if self.input_device_index is not None:
            return self.input_device_index
        try:
            return int(pa.get_default_input_device_info()['index'])
        except (IOError, OSError) as e:
            logger.warning(f"No default input device: {e}")
            raise PermissionDenied("Microphone permission denied") from e

    def _select_format(self, pa: pyaudio.PyAudio, device_index: Optional[int]) -> CaptureFormat:
        for candidate in self.formats:
            try:
                if pa.is_format_supported(
                    candidate.sample_rate,
                    input_device=device_index,
                    input_channels=candidate.channels,
                    input_format=candidate.sample_format,
                ):
                    return candidate
            except ValueError as e:
                logger.debug(f"Capture format rejected ({candidate.sample_rate}Hz): {e}")
        tried = ", ".join(f"{f.mime_type}@{f.sample_rate}Hz" for f in self.formats)
        raise NoSupportedFormat(f"No supported audio format for recording (tried {tried})")

    def _open_stream(self, pa: pyaudio.PyAudio, capture_format: CaptureFormat, device_index: Optional[int]):
        try:
            stream = pa.open(
                format=capture_format.sample_format,
                channels=capture_format.channels,
                rate=capture_format.sample_rate,
                input=True,
                input_device_index=device_index,
                frames_per_buffer=self.block_size,
            )
        except (IOError, OSError) as e:
            if _portaudio_error_code(e) in ACCESS_REFUSED_CODES:
                raise PermissionDenied("Microphone permission denied") from e
            raise CaptureError(f"Microphone access failed: {e}") from e
        logger.info(f"Audio stream opened: {capture_format.sample_rate}Hz, "
                    f"{self.block_size} frames/read")
        return stream

    def _to_int16(self, data: bytes) -> np.ndarray:
        if self.format.sample_format == pyaudio.paFloat32:
            samples = np.frombuffer(data, dtype=np.float32)
            return (np.clip(samples, -1.0, 1.0) * 32767).astype(np.int16)
        return np.frombuffer(data, dtype=np.int16)

    def _update_window(self, block: np.ndarray) -> None:
        channels = self.format.channels
        if channels > 1:
            usable = len(block) - len(block) % channels
            mono = block[:usable].reshape(-1, channels).mean(axis=1)
        else:
            mono = block
        mono = (mono.astype(np.float32) / 32768.0)[-self.analysis_window:]
        if not len(mono):
            return
        with self._window_lock:
            self._window = np.roll(self._window, -len(mono))
            self._window[-len(mono):] = mono

    def _emit(self, data: bytes) -> None:
        self.total_fragments += 1
        fragment = AudioFragment(
            data=data,
            timestamp=time.time(),
            sequence_number=self.total_fragments,
            sample_rate=self.format.sample_rate,
            channels=self.format.channels,
        )
        self.on_data(fragment)

    def _record_continuously(self) -> None:
        """Internal method: capture loop in background thread."""
        samples_per_fragment = int(self.format.sample_rate * self.timeslice_ms / 1000)
        pending: List[bytes] = []
        pending_samples = 0
        failure: Optional[Exception] = None
        try:
            while not self.stop_event.is_set():
                data = self.stream.read(self.block_size, exception_on_overflow=False)
                block = self._to_int16(data)
                if not len(block):
                    continue
                self._update_window(block)
                pending.append(block.tobytes())
                pending_samples += len(block) // self.format.channels
                if pending_samples >= samples_per_fragment:
                    self._emit(b''.join(pending))
                    pending, pending_samples = [], 0
            # Flush the partial fragment, so consumers get everything captured
            if pending:
                self._emit(b''.join(pending))
        except Exception as e:
            logger.error(f"Audio capture failed: {e}")
            failure = e
        finally:
            self._release()
            self.is_recording = False
            if self.on_stop:
                self.on_stop(failure)

    def _release(self) -> None:
        if self.stream is not None:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except Exception as e:
                logger.warning(f"Error closing input stream: {e}")
            self.stream = None
        if self.pyaudio_instance is not None:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None

    def get_recording_stats(self) -> AudioStats:
        """Get current capture statistics."""
        duration = 0.0
        if self.start_time:
            duration = (datetime.now() - self.start_time).total_seconds()

        return AudioStats(
            is_recording=self.is_recording,
            duration_seconds=duration,
            sample_rate=self.sample_rate,
            block_size=self.block_size,
            total_fragments=self.total_fragments,
        )

    def __del__(self):
        """Ensure resources are cleaned up on deletion."""
        if self.is_recording:
            self.stop()
