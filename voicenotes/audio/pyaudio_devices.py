"""PyAudio-backed microphone and speaker devices."""

import wave
import logging
import threading
from threading import Thread, Event
from typing import Optional

import numpy as np
import pyaudio
from scipy import signal

from ..errors import DeviceUnavailableError, LoadFailureError
from ..models.audio import CaptureSettings, RecordingStatus, PlaybackStatus
from .devices import MicrophoneDevice, OutputDevice


logger = logging.getLogger(__name__)

SAMPLE_DTYPES = {1: np.uint8, 2: np.int16, 4: np.int32}


class PyAudioMicrophone(MicrophoneDevice):
    """Continuous microphone capture into a WAV file on a background thread."""

    def __init__(self, format: int = pyaudio.paInt16):
        self.format = format

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.pause_event = Event()
        self.lock = threading.Lock()
        self.is_recording = False

        self.settings: Optional[CaptureSettings] = None
        self.frames_written = 0
        self.wave_file: Optional[wave.Wave_write] = None

        # PyAudio instance
        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream: Optional[pyaudio.Stream] = None

    def request_permission(self) -> bool:
        """Check that an input device is available and accessible."""
        instance = pyaudio.PyAudio()
        try:
            info = instance.get_default_input_device_info()
            logger.debug(f"Default input device: {info.get('name')}")
            return True
        except (IOError, OSError) as e:
            logger.warning(f"Microphone not available: {e}")
            return False
        finally:
            instance.terminate()

    def __open_audio_stream(self) -> pyaudio.Stream:
        self.pyaudio_instance = pyaudio.PyAudio()
        stream = self.pyaudio_instance.open(
            format=self.format,
            channels=self.settings.channels,
            rate=self.settings.sample_rate,
            input=True,
            frames_per_buffer=self.settings.chunk_size,
            stream_callback=None
        )
        logger.info(f"Audio input stream opened: {self.settings.sample_rate}Hz, "
                    f"{self.settings.chunk_size} samples/chunk")
        return stream

    def start(self, location: str, settings: CaptureSettings) -> None:
        if self.is_recording:
            raise DeviceUnavailableError("Microphone is already capturing")

        self.settings = settings
        self.frames_written = 0
        self.stop_event.clear()
        self.pause_event.clear()

        self.wave_file = wave.open(location, 'wb')
        self.wave_file.setnchannels(settings.channels)
        self.wave_file.setsampwidth(settings.sample_width)
        self.wave_file.setframerate(settings.sample_rate)

        try:
            self.stream = self.__open_audio_stream()
        except (IOError, OSError) as e:
            self._release()
            raise DeviceUnavailableError(f"Could not open microphone: {e}") from e

        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "MicrophoneCaptureThread"
        self.recording_thread.start()
        self.is_recording = True
        logger.info(f"Capturing audio to {location}")

    def _record_continuously(self) -> None:
        """Internal method: continuous capture loop in background thread."""
        bytes_per_frame = self.settings.sample_width * self.settings.channels
        try:
            while not self.stop_event.is_set():
                audio_chunk = self.stream.read(self.settings.chunk_size, exception_on_overflow=False)
                # Keep draining the input while paused so it does not overflow
                if self.pause_event.is_set():
                    continue
                with self.lock:
                    self.wave_file.writeframes(audio_chunk)
                    self.frames_written += len(audio_chunk) // bytes_per_frame
        except (IOError, OSError) as e:
            logger.error(f"Microphone read failed: {e}")

    def pause(self) -> None:
        self.pause_event.set()

    def resume(self) -> None:
        self.pause_event.clear()

    def _duration_ms(self) -> int:
        if not self.settings:
            return 0
        return int(self.frames_written * 1000 / self.settings.sample_rate)

    def stop(self) -> int:
        if not self.is_recording:
            logger.warning("No capture in progress")
            return self._duration_ms()

        self.stop_event.set()

        # Wait for recording thread to finish
        if self.recording_thread and self.recording_thread.is_alive():
            self.recording_thread.join(timeout=2.0)
            if self.recording_thread.is_alive():
                logger.warning("Capture thread did not stop cleanly")

        self._release()
        self.is_recording = False
        duration_ms = self._duration_ms()
        logger.info(f"Capture stopped. Frames: {self.frames_written} ({duration_ms} ms)")
        return duration_ms

    def _release(self) -> None:
        if self.stream:
            self.stream.stop_stream()
            self.stream.close()
            self.stream = None
        if self.pyaudio_instance:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None
        if self.wave_file:
            self.wave_file.close()
            self.wave_file = None

    def status(self) -> RecordingStatus:
        paused = self.pause_event.is_set()
        return RecordingStatus(
            is_recording=self.is_recording and not paused,
            is_paused=self.is_recording and paused,
            duration_ms=self._duration_ms(),
        )


class PyAudioOutput(OutputDevice):
    """Plays one WAV file through the default output on a background thread.

    Rate changes resample each chunk, which shifts pitch.
    """

    preserves_pitch = False

    def __init__(self, chunk_size: int = 1024):
        self.chunk_size = chunk_size

        self.samples: Optional[np.ndarray] = None  # frames x channels
        self.sample_rate = 0
        self.sample_width = 2
        self.position = 0  # in frames
        self.rate = 1.0
        self.is_playing = False
        self.finished_pending = False

        self.lock = threading.Lock()
        self.play_event = Event()
        self.close_event = Event()
        self.playback_thread: Optional[Thread] = None

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream: Optional[pyaudio.Stream] = None

    def open(self, location: str) -> None:
        try:
            with wave.open(location, 'rb') as wf:
                channels = wf.getnchannels()
                self.sample_width = wf.getsampwidth()
                self.sample_rate = wf.getframerate()
                raw = wf.readframes(wf.getnframes())
        except (OSError, EOFError, wave.Error) as e:
            raise LoadFailureError(f"Could not read audio file {location}: {e}") from e

        dtype = SAMPLE_DTYPES.get(self.sample_width)
        if dtype is None or channels < 1:
            raise LoadFailureError(f"Unsupported audio format in {location}")

        samples = np.frombuffer(raw, dtype=dtype)
        if samples.size % channels:
            raise LoadFailureError(f"Truncated audio data in {location}")
        self.samples = samples.reshape(-1, channels)

        try:
            self.pyaudio_instance = pyaudio.PyAudio()
            self.stream = self.pyaudio_instance.open(
                format=self.pyaudio_instance.get_format_from_width(self.sample_width),
                channels=channels,
                rate=self.sample_rate,
                output=True,
                frames_per_buffer=self.chunk_size,
            )
        except (IOError, OSError) as e:
            self.close()
            raise DeviceUnavailableError(f"Could not open audio output: {e}") from e

        self.close_event.clear()
        self.playback_thread = Thread(target=self._play_continuously, daemon=True)
        self.playback_thread.name = "AudioOutputThread"
        self.playback_thread.start()
        logger.info(f"Loaded {location}: {len(self.samples)} frames at {self.sample_rate}Hz")

    def _resample(self, chunk: np.ndarray, rate: float) -> np.ndarray:
        target = max(1, int(round(len(chunk) / rate)))
        resampled = signal.resample(chunk.astype(np.float64), target, axis=0)
        info = np.iinfo(chunk.dtype)
        return np.clip(resampled, info.min, info.max).astype(chunk.dtype)

    def _play_continuously(self) -> None:
        """Internal method: write chunks to the output while playing."""
        while not self.close_event.is_set():
            if not self.play_event.wait(timeout=0.05):
                continue

            with self.lock:
                if self.samples is None:
                    break
                if self.position >= len(self.samples):
                    # Natural end of track
                    self.is_playing = False
                    self.play_event.clear()
                    self.position = 0
                    self.finished_pending = True
                    continue
                step = max(1, int(round(self.chunk_size * self.rate)))
                chunk = self.samples[self.position:self.position + step]
                self.position += len(chunk)
                rate = self.rate

            if rate != 1.0 and len(chunk) > 1:
                chunk = self._resample(chunk, rate)
            try:
                self.stream.write(chunk.tobytes())
            except (IOError, OSError) as e:
                logger.error(f"Audio output write failed: {e}")
                with self.lock:
                    self.is_playing = False
                    self.play_event.clear()

    def _require_loaded(self) -> None:
        if self.samples is None:
            raise DeviceUnavailableError("No audio resource loaded")

    def play(self) -> None:
        self._require_loaded()
        with self.lock:
            self.is_playing = True
        self.play_event.set()

    def pause(self) -> None:
        with self.lock:
            self.is_playing = False
        self.play_event.clear()

    def stop(self) -> None:
        self.pause()
        with self.lock:
            self.position = 0

    def close(self) -> None:
        self.close_event.set()
        self.play_event.clear()
        if self.playback_thread and self.playback_thread.is_alive():
            self.playback_thread.join(timeout=2.0)
            if self.playback_thread.is_alive():
                logger.warning("Playback thread did not stop cleanly")
        if self.stream:
            self.stream.stop_stream()
            self.stream.close()
            self.stream = None
        if self.pyaudio_instance:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None
        with self.lock:
            self.samples = None
            self.is_playing = False

    def seek(self, position_ms: int) -> None:
        self._require_loaded()
        with self.lock:
            frame = int(position_ms * self.sample_rate / 1000)
            self.position = min(max(frame, 0), len(self.samples))

    def set_rate(self, rate: float) -> None:
        with self.lock:
            self.rate = rate

    def _frames_to_ms(self, frames: int) -> int:
        if not self.sample_rate:
            return 0
        return int(frames * 1000 / self.sample_rate)

    def status(self) -> PlaybackStatus:
        with self.lock:
            finished = self.finished_pending
            self.finished_pending = False
            total = len(self.samples) if self.samples is not None else 0
            return PlaybackStatus(
                is_loaded=self.samples is not None,
                is_playing=self.is_playing,
                position_ms=self._frames_to_ms(self.position),
                duration_ms=self._frames_to_ms(total),
                rate=self.rate,
                did_just_finish=finished,
            )
