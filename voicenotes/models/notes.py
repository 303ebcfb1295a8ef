"""Data models for catalogued voice notes."""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional, Dict, Any


@dataclass(frozen=True)
class VoiceNote:
    """A recording with a durable catalog entry and a backing audio file."""
    id: str
    name: str
    location: str      # Absolute path of the audio file
    duration_ms: int   # Captured at stop time
    created_at: str    # ISO-8601 instant
    size_bytes: Optional[int] = None

    @property
    def created_datetime(self) -> datetime:
        """Creation instant as a timezone-aware datetime (naive values are UTC)."""
        value = self.created_at
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        created = datetime.fromisoformat(value)
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return created

    def renamed(self, name: str) -> "VoiceNote":
        """Return a copy of this note with only the name changed."""
        return replace(self, name=name)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the persisted index layout."""
        data = {
            "id": self.id,
            "name": self.name,
            "uri": self.location,
            "duration": self.duration_ms,
            "createdAt": self.created_at,
        }
        if self.size_bytes is not None:
            data["size"] = self.size_bytes
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VoiceNote":
        """Build a note from an index record.

        Raises:
            ValueError: If a required field is missing or has the wrong type
        """
        try:
            size = data.get("size")
            return cls(
                id=str(data["id"]),
                name=str(data["name"]),
                location=str(data["uri"]),
                duration_ms=int(data["duration"]),
                created_at=str(data["createdAt"]),
                size_bytes=int(size) if size is not None else None,
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid voice note record: {e}") from e
