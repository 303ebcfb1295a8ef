"""Audio devices and engines."""

from .devices import MicrophoneDevice, OutputDevice
from .periodic import PeriodicTask
from .status_pub import StatusPublisher
from .recording_engine import RecordingEngine
from .playback_engine import PlaybackEngine, PlaybackHandle

__all__ = [
    'MicrophoneDevice',
    'OutputDevice',
    'PeriodicTask',
    'StatusPublisher',
    'RecordingEngine',
    'PlaybackEngine',
    'PlaybackHandle',
]
