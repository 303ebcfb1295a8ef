"""Persistent storage: recordings directory and catalog index."""

from .file_manager import FileManager
from .catalog_store import (
    KeyValueStore,
    MemoryKeyValueStore,
    JsonFileKeyValueStore,
    CatalogStore,
)

__all__ = [
    "FileManager",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "CatalogStore",
]
