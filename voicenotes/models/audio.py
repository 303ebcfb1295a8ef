"""Audio-related data models."""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class CaptureSettings:
    """Encoding parameters for microphone capture."""
    sample_rate: int
    channels: int
    sample_width: int  # Bytes per sample
    chunk_size: int    # Frames per device read


class CapturePreset(Enum):
    """Fixed capture presets."""
    HIGH_QUALITY = CaptureSettings(sample_rate=44100, channels=1, sample_width=2, chunk_size=1024)
    LOW_QUALITY = CaptureSettings(sample_rate=16000, channels=1, sample_width=2, chunk_size=1024)


@dataclass
class RecordingStatus:
    """Status snapshot polled from the microphone device."""
    is_recording: bool
    is_paused: bool
    duration_ms: int  # Time spent capturing, pauses excluded


@dataclass
class PlaybackStatus:
    """Status snapshot of a loaded playback resource."""
    is_loaded: bool
    is_playing: bool
    position_ms: int
    duration_ms: int
    rate: float = 1.0
    did_just_finish: bool = False


@dataclass(frozen=True)
class CaptureResult:
    """Outcome of a finished capture, before it is committed."""
    location: str
    duration_ms: int
