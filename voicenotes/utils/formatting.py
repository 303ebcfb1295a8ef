"""Formatting and identifier helpers for voice notes."""

import time
import threading
from datetime import datetime, timezone
from typing import Optional, Iterable

_id_lock = threading.Lock()
_last_id_ms = 0


def format_duration(ms: int) -> str:
    """Format milliseconds as MM:SS."""
    total_seconds = max(0, int(ms)) // 1000
    minutes = total_seconds // 60
    seconds = total_seconds % 60
    return f"{minutes:02d}:{seconds:02d}"


def format_size(size_bytes: Optional[int]) -> str:
    if size_bytes is None:
        return "-"
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


def generate_recording_id(taken: Iterable[str] = ()) -> str:
    """Generate a `recording_<epoch-ms>` id.

    Ids are strictly increasing within the process and skip any value in
    `taken`, so two saves in the same millisecond never collide.
    """
    global _last_id_ms
    taken = set(taken)
    with _id_lock:
        candidate = max(int(time.time() * 1000), _last_id_ms + 1)
        while f"recording_{candidate}" in taken:
            candidate += 1
        _last_id_ms = candidate
    return f"recording_{candidate}"


def generate_default_name(now: Optional[datetime] = None) -> str:
    """Default label for an unnamed recording: 'Recording <date> <time>'."""
    now = now or datetime.now()
    return f"Recording {now.strftime('%m/%d/%Y')} {now.strftime('%I:%M:%S %p')}"


def utc_timestamp() -> str:
    """Current instant as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")
