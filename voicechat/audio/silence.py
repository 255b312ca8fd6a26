"""Silence detection: rolling RMS loudness with a resettable end-of-utterance deadline."""

import asyncio
import logging
from typing import Optional, Callable

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.015  # RMS on a 0..1 scale
DEFAULT_WINDOW_MS = 1200
DEFAULT_TICK_MS = 16  # about one display frame


def rms_loudness(samples: np.ndarray) -> float:
    """Root-mean-square amplitude of a float window in -1..1."""
    if samples is None or len(samples) == 0:
        return 0.0
    samples = np.asarray(samples, dtype=np.float64)
    return float(np.sqrt(np.mean(samples * samples)))


class SilenceTimer:
    """Single-shot deadline on the event loop; `reset` cancels and reschedules."""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def reset(self, timeout_s: float, on_timeout: Callable[[], None]) -> None:
        self.cancel()
        self._handle = self._loop.call_later(timeout_s, self._fire, on_timeout)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, on_timeout: Callable[[], None]) -> None:
        self._handle = None
        on_timeout()


class SilenceDetector:
    """Watches a live audio window and signals after sustained quiet."""

    def __init__(self,
                 threshold: float = DEFAULT_THRESHOLD,
                 window_ms: float = DEFAULT_WINDOW_MS,
                 tick_ms: float = DEFAULT_TICK_MS):
        """Initialize detector.

        Args:
            threshold: Loudness above which a tick counts as speech
            window_ms: Quiet time after the last loud tick that ends the utterance
            tick_ms: Analysis interval
        """
        self.threshold = threshold
        self.window_s = window_ms / 1000.0
        self.tick_s = tick_ms / 1000.0

        self.timer: Optional[SilenceTimer] = None
        self.last_loudness = 0.0
        self.teardown_count = 0

        self._read_window: Optional[Callable[[], np.ndarray]] = None
        self._on_silence: Optional[Callable[[], None]] = None
        self._on_error: Optional[Callable[[Exception], None]] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def timer_armed(self) -> bool:
        return self.timer is not None and self.timer.active

    def start_analysis(self,
                       read_window: Callable[[], np.ndarray],
                       on_silence: Callable[[], None],
                       on_error: Optional[Callable[[Exception], None]] = None) -> None:
        """Arm the silence timer and start the analysis loop on the running event loop.

        Args:
            read_window: Returns the current analysis window (float, -1..1)
            on_silence: Called once when the window elapses without a loud tick
            on_error: Called if reading or analysing the window fails
        """
        if self.is_active:
            logger.warning("Analysis already running")
            return
        loop = asyncio.get_running_loop()
        self._read_window = read_window
        self._on_silence = on_silence
        self._on_error = on_error
        self.last_loudness = 0.0

        self.timer = SilenceTimer(loop)
        # Armed right away so a session that never hears speech still ends
        self.timer.reset(self.window_s, self._silence_elapsed)
        self._task = loop.create_task(self._analyse())
        logger.debug(f"Silence analysis started (threshold={self.threshold}, window={self.window_s}s)")

    def tick(self) -> float:
        """Analyse the current window once; returns its loudness."""
        loudness = rms_loudness(self._read_window())
        self.last_loudness = loudness
        if loudness > self.threshold:
            self.timer.reset(self.window_s, self._silence_elapsed)
        return loudness

    async def _analyse(self) -> None:
        try:
            while True:
                self.tick()
                await asyncio.sleep(self.tick_s)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Silence analysis failed: {e}")
            if self.timer:
                self.timer.cancel()
            if self._on_error:
                self._on_error(e)

    def _silence_elapsed(self) -> None:
        logger.info(f"No speech for {self.window_s:.2f}s, ending utterance")
        if self._on_silence:
            self._on_silence()

    def stop_analysis(self) -> None:
        """Cancel the loop and the timer and drop the analysis graph.

        Only the first call after `start_analysis` releases anything.
        """
        if self._task is not None:
            self._task.cancel()
            self._task = None
        if self.timer is not None:
            self.timer.cancel()
        if self._read_window is None:
            return
        self._read_window = None
        self._on_silence = None
        self._on_error = None
        self.teardown_count += 1
        logger.debug("Silence analysis stopped")
