"""voicenotes - record, catalog and play back local voice memos."""

__version__ = "0.1.0"
