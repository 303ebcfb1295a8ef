"""Ephemeral recording and playback session state."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class RecordingPhase(Enum):
    """Phase of the recording state machine."""
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPING = "stopping"


class PlaybackPhase(Enum):
    """Phase of the playback state machine."""
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass
class RecordingSession:
    """The single live recording interaction, owned by the session controller."""
    phase: RecordingPhase = RecordingPhase.IDLE
    started_at: Optional[datetime] = None
    elapsed_ms: int = 0

    @property
    def is_active(self) -> bool:
        return self.phase in (RecordingPhase.RECORDING, RecordingPhase.PAUSED)

    def reset(self) -> None:
        self.phase = RecordingPhase.IDLE
        self.started_at = None
        self.elapsed_ms = 0


@dataclass
class PlaybackSession:
    """The single live playback interaction, owned by the session controller."""
    note_id: Optional[str] = None
    phase: PlaybackPhase = PlaybackPhase.STOPPED
    position_ms: int = 0
    duration_ms: int = 0
    rate: float = 1.0
    token: int = 0  # Token of the loaded playback handle; 0 when nothing is loaded

    @property
    def is_loaded(self) -> bool:
        return self.note_id is not None and self.phase != PlaybackPhase.STOPPED

    def reset(self) -> None:
        """Clear the session but keep the user's chosen rate."""
        self.note_id = None
        self.phase = PlaybackPhase.STOPPED
        self.position_ms = 0
        self.duration_ms = 0
        self.token = 0
