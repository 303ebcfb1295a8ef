"""Helper functions shared across voicenotes."""

from .formatting import (
    format_duration,
    format_size,
    generate_recording_id,
    generate_default_name,
    utc_timestamp,
)

__all__ = [
    "format_duration",
    "format_size",
    "generate_recording_id",
    "generate_default_name",
    "utc_timestamp",
]
