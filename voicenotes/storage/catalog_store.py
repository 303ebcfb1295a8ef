"""Durable catalog of voice notes on top of a key-value store."""

import os
import json
import logging
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..errors import PersistenceError
from ..models.notes import VoiceNote
from .file_manager import FileManager

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """String key-value persistence for the current device."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value or None when the key is absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        pass


class MemoryKeyValueStore(KeyValueStore):
    """In-process key-value store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class JsonFileKeyValueStore(KeyValueStore):
    """Key-value store persisted as a single JSON object file.

    Writes go to a temp file in the same directory and are moved into place
    with os.replace, so readers never observe a half-written file.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.lock = threading.Lock()
        logger.info(f"JsonFileKeyValueStore initialized at: {self.path}")

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Key-value file does not contain an object: {self.path}")
        return data

    def get(self, key: str) -> Optional[str]:
        with self.lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        with self.lock:
            data = self._read_all()
            data[key] = value

            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".kv_", suffix=".json")
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.path)
            except BaseException:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                raise
        logger.debug(f"Stored key '{key}' ({len(value)} chars) in {self.path}")


class CatalogStore:
    """Reads and writes the voice note index, reconciled against files on disk."""

    def __init__(self, kv_store: KeyValueStore, file_manager: FileManager, key: str = "voice_notes"):
        """Initialize catalog store.

        Args:
            kv_store: Persistence backend for the serialized index
            file_manager: Used to check that each note's file still exists
            key: Fixed storage key of the index
        """
        self.kv_store = kv_store
        self.file_manager = file_manager
        self.key = key

    def load(self) -> List[VoiceNote]:
        """Load the index, keeping only notes whose audio file exists.

        Returns:
            Notes in persisted (newest-first) order

        Raises:
            PersistenceError: If the index cannot be read or parsed
        """
        try:
            stored = self.kv_store.get(self.key)
        except (OSError, ValueError) as e:
            logger.error(f"Error reading catalog index: {e}")
            raise PersistenceError(f"Failed to read voice notes: {e}") from e

        if not stored:
            logger.info("No catalog index found, starting empty")
            return []

        try:
            records = json.loads(stored)
        except ValueError as e:
            logger.error(f"Catalog index is not valid JSON: {e}")
            raise PersistenceError(f"Voice notes index is corrupt: {e}") from e

        if not isinstance(records, list):
            raise PersistenceError("Voice notes index is corrupt: expected a list")

        notes = []
        seen_ids = set()
        for record in records:
            try:
                note = VoiceNote.from_dict(record)
            except (ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed catalog record: {e}")
                continue

            if note.id in seen_ids:
                logger.warning(f"Skipping duplicate catalog id: {note.id}")
                continue

            if not self.file_manager.exists(note.location):
                logger.debug(f"Pruning {note.id}, file missing: {note.location}")
                continue

            seen_ids.add(note.id)
            notes.append(note)

        logger.info(f"Loaded {len(notes)} voice notes ({len(records) - len(notes)} pruned)")
        return notes

    def save(self, notes: Sequence[VoiceNote]) -> None:
        """Overwrite the persisted index with the full list.

        Raises:
            PersistenceError: If serialization or the write fails
        """
        try:
            payload = json.dumps([note.to_dict() for note in notes])
            self.kv_store.set(self.key, payload)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving catalog index: {e}")
            raise PersistenceError(f"Failed to save voice notes: {e}") from e

        logger.debug(f"Saved catalog index with {len(notes)} notes")
