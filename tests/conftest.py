"""Pytest configuration and fixtures for voicenotes tests."""

import uuid
import wave
import logging
import tempfile
import threading
import time
from pathlib import Path
from typing import List, Optional
from unittest.mock import Mock, patch

import numpy as np
import pytest

from voicenotes.audio.devices import MicrophoneDevice, OutputDevice
from voicenotes.audio.playback_engine import PlaybackEngine
from voicenotes.audio.recording_engine import RecordingEngine
from voicenotes.audio.status_pub import StatusPublisher
from voicenotes.errors import DeviceUnavailableError, LoadFailureError
from voicenotes.models.audio import CaptureSettings, RecordingStatus, PlaybackStatus
from voicenotes.services.session_controller import SessionController
from voicenotes.storage.catalog_store import CatalogStore, MemoryKeyValueStore
from voicenotes.storage.file_manager import FileManager


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.01


class FakeMicrophone(MicrophoneDevice):
    """Microphone whose captured time only advances when the test says so."""

    def __init__(self, events: Optional[list] = None, permission: bool = True):
        self.events = events if events is not None else []
        self.permission = permission
        self.fail_start = False
        self.lock = threading.Lock()
        self.location: Optional[str] = None
        self.settings: Optional[CaptureSettings] = None
        self.recording = False
        self.paused = False
        self.duration_ms = 0
        self.locations: List[str] = []

    def request_permission(self) -> bool:
        self.events.append("permission_requested")
        return self.permission

    def start(self, location: str, settings: CaptureSettings) -> None:
        if self.fail_start:
            raise OSError("Input device busy")
        with self.lock:
            self.location = location
            self.settings = settings
            self.recording = True
            self.paused = False
            self.duration_ms = 0
        self.locations.append(location)
        self.events.append("recording_started")

    def pause(self) -> None:
        with self.lock:
            self.paused = True

    def resume(self) -> None:
        with self.lock:
            self.paused = False

    def advance(self, ms: int) -> None:
        """Simulate `ms` of wall-clock time; only counted while capturing."""
        with self.lock:
            if self.recording and not self.paused:
                self.duration_ms += ms

    def stop(self) -> int:
        with self.lock:
            self.recording = False
            self.paused = False
            Path(self.location).write_bytes(b"RIFF" + b"\x00" * (self.duration_ms // 10))
        self.events.append("recording_stopped")
        return self.duration_ms

    def status(self) -> RecordingStatus:
        with self.lock:
            return RecordingStatus(
                is_recording=self.recording and not self.paused,
                is_paused=self.recording and self.paused,
                duration_ms=self.duration_ms,
            )


class FakeOutput(OutputDevice):
    """Output device driven by explicit `advance` calls.

    The `*_delay` attributes make the matching call block, to simulate a slow device.
    """

    pause_delay = 0.0
    play_delay = 0.0
    close_delay = 0.0

    def __init__(self, events: list, duration_ms: int = 5000):
        self.events = events
        self.duration_ms = duration_ms
        self.lock = threading.Lock()
        self.location: Optional[str] = None
        self.loaded = False
        self.playing = False
        self.position_ms = 0
        self.rate = 1.0
        self.finished_pending = False
        self.stop_calls = 0
        self.close_calls = 0

    def open(self, location: str) -> None:
        if not Path(location).is_file():
            raise LoadFailureError(f"Missing audio file: {location}")
        self.location = location
        self.loaded = True
        self.events.append(f"load:{Path(location).stem}")

    def play(self) -> None:
        time.sleep(self.play_delay)
        if not self.loaded:
            raise DeviceUnavailableError("Not loaded")
        with self.lock:
            self.playing = True

    def pause(self) -> None:
        time.sleep(self.pause_delay)
        with self.lock:
            self.playing = False

    def stop(self) -> None:
        with self.lock:
            self.playing = False
            self.position_ms = 0
            self.stop_calls += 1
        self.events.append(f"stop:{Path(self.location).stem}")

    def close(self) -> None:
        time.sleep(self.close_delay)
        with self.lock:
            self.loaded = False
            self.playing = False
            self.close_calls += 1
        self.events.append("playback_released")

    def seek(self, position_ms: int) -> None:
        with self.lock:
            self.position_ms = min(max(position_ms, 0), self.duration_ms)

    def set_rate(self, rate: float) -> None:
        with self.lock:
            self.rate = rate

    def advance(self, ms: int) -> None:
        with self.lock:
            if not self.playing:
                return
            self.position_ms += int(ms * self.rate)
            if self.position_ms >= self.duration_ms:
                self.position_ms = 0
                self.playing = False
                self.finished_pending = True

    def status(self) -> PlaybackStatus:
        with self.lock:
            finished = self.finished_pending
            self.finished_pending = False
            return PlaybackStatus(
                is_loaded=self.loaded,
                is_playing=self.playing,
                position_ms=self.position_ms,
                duration_ms=self.duration_ms,
                rate=self.rate,
                did_just_finish=finished,
            )


class FailingKeyValueStore(MemoryKeyValueStore):
    """Key-value store whose writes fail while `failing` is set."""

    def __init__(self):
        super().__init__()
        self.failing = True
        self.set_attempts = 0

    def set(self, key: str, value: str) -> None:
        self.set_attempts += 1
        if self.failing:
            raise OSError("Storage unavailable")
        super().set(key, value)


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def file_manager(temp_data_dir):
    fm = FileManager(str(Path(temp_data_dir) / "recordings"))
    fm.ensure_directory()
    return fm


@pytest.fixture
def device_events():
    """Ordered log of device calls shared by the fake devices."""
    return []


@pytest.fixture
def microphone(device_events):
    return FakeMicrophone(device_events)


@pytest.fixture
def outputs(device_events):
    """Factory for fake output devices; created devices are collected in `.devices`."""
    class OutputFactory:
        def __init__(self):
            self.devices: List[FakeOutput] = []
            self.duration_ms = 5000
            self.delays = {}

        def __call__(self) -> FakeOutput:
            device = FakeOutput(device_events, self.duration_ms)
            for name, seconds in self.delays.items():
                setattr(device, f"{name}_delay", seconds)
            self.devices.append(device)
            return device

    return OutputFactory()


@pytest.fixture
def publisher():
    """Publisher on a topic unique to the test."""
    return StatusPublisher(f"test_status_{uuid.uuid4().hex}")


@pytest.fixture
def kv_store():
    return MemoryKeyValueStore()


@pytest.fixture
def make_controller(file_manager, microphone, outputs, publisher, kv_store):
    """Build a session controller wired to fake devices."""
    def _make(store=None, **kwargs) -> SessionController:
        catalog = CatalogStore(store if store is not None else kv_store, file_manager)
        recording_engine = RecordingEngine(microphone, file_manager, poll_interval=POLL_INTERVAL)
        playback_engine = PlaybackEngine(outputs, publisher, status_interval=POLL_INTERVAL)
        kwargs.setdefault("retry_delay", 0)
        return SessionController(catalog, file_manager, recording_engine, playback_engine, **kwargs)

    return _make


@pytest.fixture
def sample_wav_file(temp_data_dir):
    """Create a short 16-bit mono WAV file."""
    file_path = Path(temp_data_dir) / "sample.wav"
    sample_rate = 16000
    t = np.linspace(0, 0.5, int(sample_rate * 0.5), False)
    audio_data = (np.sin(2 * np.pi * 440 * t) * 32767).astype(np.int16)

    with wave.open(str(file_path), 'wb') as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(audio_data.tobytes())

    return str(file_path)


@pytest.fixture
def failing_kv_store():
    return FailingKeyValueStore()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        # Configure mock stream
        mock_stream.read.return_value = b'\x00' * 2048  # Silent audio, 1024 16-bit frames
        mock_stream.write.return_value = None
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        # Configure mock PyAudio instance
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_default_input_device_info.return_value = {'name': 'Mock Microphone'}

        # Configure mock PyAudio class
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without devices")
    config.addinivalue_line("markers", "integration: controller tests against fake devices")
    config.addinivalue_line("markers", "hardware: tests that need a real microphone and speaker")
