"""Event models for engine-to-controller messaging."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .audio import PlaybackStatus


@dataclass
class PlaybackStatusEvent:
    """Periodic or terminal playback status pushed by the playback engine."""
    token: int  # Identifies the playback handle that produced the event
    note_id: Optional[str]
    status: PlaybackStatus
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def finished(self) -> bool:
        return self.status.did_just_finish
