"""Data models for the voicenotes application."""

from .notes import VoiceNote
from .audio import (
    CaptureSettings,
    CapturePreset,
    RecordingStatus,
    PlaybackStatus,
    CaptureResult,
)
from .session import (
    RecordingPhase,
    PlaybackPhase,
    RecordingSession,
    PlaybackSession,
)
from .events import PlaybackStatusEvent

__all__ = [
    "VoiceNote",
    "CaptureSettings",
    "CapturePreset",
    "RecordingStatus",
    "PlaybackStatus",
    "CaptureResult",
    # Session state
    "RecordingPhase",
    "PlaybackPhase",
    "RecordingSession",
    "PlaybackSession",
    "PlaybackStatusEvent",
]
