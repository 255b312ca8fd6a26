"""Pytest configuration and fixtures for VoiceChat tests."""

import io
import time
import logging
from pathlib import Path
from unittest.mock import Mock, patch

import numpy as np
import pytest
import yaml
from scipy.io import wavfile


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without hardware or network")
    config.addinivalue_line("markers", "integration: end-to-end pipeline scenarios")
    config.addinivalue_line("markers", "hardware: needs a real microphone and speakers")


def generate_samples(pattern="sine", duration_seconds=1.0, sample_rate=16000, amplitude=0.5):
    """Generate int16 samples ('sine', 'noise' or 'silence')."""
    samples = int(duration_seconds * sample_rate)

    if pattern == "sine":
        t = np.linspace(0, duration_seconds, samples, False)
        wave_data = amplitude * np.sin(2 * np.pi * 440 * t)
    elif pattern == "noise":
        wave_data = np.random.uniform(-amplitude, amplitude, samples)
    elif pattern == "silence":
        wave_data = np.zeros(samples)
    else:
        raise ValueError(f"Unknown pattern: {pattern}")

    return (wave_data * 32767).astype(np.int16)


class ScriptedStream:
    """Stand-in for a PyAudio input stream that plays a loud/quiet script in real time.

    Reads block for frames / sample_rate seconds, like a real device. The stream
    is loud for `loud_seconds` after the first read and silent afterwards.
    """

    def __init__(self, sample_rate=16000, loud_seconds=0.0, amplitude=0.5):
        self.sample_rate = sample_rate
        self.loud_seconds = loud_seconds
        self.amplitude = amplitude
        self.started_at = None
        self.loud_ended_at = None
        self.frames_read = 0
        self.stop_stream = Mock()
        self.close = Mock()

    def read(self, frames, exception_on_overflow=True):
        now = time.monotonic()
        if self.started_at is None:
            self.started_at = now
        time.sleep(frames / self.sample_rate)
        self.frames_read += frames

        if now - self.started_at < self.loud_seconds:
            t = np.arange(frames) / self.sample_rate
            block = self.amplitude * np.sin(2 * np.pi * 440 * t)
            return (block * 32767).astype(np.int16).tobytes()
        if self.loud_ended_at is None:
            self.loud_ended_at = now
        return np.zeros(frames, dtype=np.int16).tobytes()


@pytest.fixture
def audio_test_data():
    """Generate various audio test data patterns as bytes."""
    def generate_audio(pattern="sine", duration_seconds=1.0, sample_rate=16000):
        return generate_samples(pattern, duration_seconds, sample_rate).tobytes()

    return generate_audio


@pytest.fixture
def wav_bytes():
    """A short WAV file as bytes."""
    out = io.BytesIO()
    wavfile.write(out, 16000, generate_samples("sine", 0.25))
    return out.getvalue()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = ScriptedStream()

        # One host API with one input device that accepts every format
        mock_pyaudio_instance.get_host_api_count.return_value = 1
        mock_pyaudio_instance.get_device_count.return_value = 1
        mock_pyaudio_instance.get_device_info_by_index.return_value = {
            'index': 0, 'name': 'Test Microphone', 'maxInputChannels': 1, 'maxOutputChannels': 2,
        }
        mock_pyaudio_instance.get_default_input_device_info.return_value = {'index': 0}
        mock_pyaudio_instance.is_format_supported.return_value = True
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def config_file(tmp_path):
    """Write a config file and return a function that builds it."""
    def write(settings=None, name="voicechat.yaml"):
        data = {
            "endpoints": {"base_url": "http://127.0.0.1:9999"},
            "logging": {"file_path": "logs/test.log", "console_output": False},
        }
        data.update(settings or {})
        path = Path(tmp_path) / name
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return str(path)

    return write
