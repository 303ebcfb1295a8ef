"""File management module for recorded audio."""

import os
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Any, Optional, List, Iterable

from ..errors import FileOperationError


logger = logging.getLogger(__name__)


class FileManager:
    """Owns the recordings directory: commits, sizes and deletes audio files."""

    def __init__(self, recordings_dir: str, extension: str = ".wav"):
        """Initialize file manager with the recordings directory.

        Args:
            recordings_dir: Directory holding one audio file per voice note
            extension: Fixed audio container extension, including the dot
        """
        self.recordings_dir = Path(recordings_dir)
        self.extension = extension if extension.startswith(".") else f".{extension}"

        logger.info(f"FileManager initialized with recordings_dir: {self.recordings_dir}")

    def ensure_directory(self) -> None:
        """Create the recordings directory (and parents) if missing."""
        try:
            self.recordings_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileOperationError(f"Could not create recordings directory {self.recordings_dir}: {e}") from e
        logger.debug(f"Ensured directory exists: {self.recordings_dir}")

    def path_for(self, note_id: str) -> Path:
        """Final location of the audio file for a note id."""
        return self.recordings_dir / f"{note_id}{self.extension}"

    def temp_location(self, prefix: str = "capture_") -> str:
        """Create an empty, uniquely named temp file for a capture in progress."""
        fd, path = tempfile.mkstemp(prefix=prefix, suffix=self.extension)
        os.close(fd)
        logger.debug(f"Allocated temp capture location: {path}")
        return path

    def commit(self, temp_location: str, note_id: str) -> str:
        """Move a finished capture into the recordings directory.

        Args:
            temp_location: Where the device wrote the capture
            note_id: Generated id the final filename is derived from

        Returns:
            Final location of the committed file

        Raises:
            FileOperationError: If the source is missing, the destination
                already exists, or the move fails
        """
        source = Path(temp_location)
        destination = self.path_for(note_id)

        if not source.is_file():
            raise FileOperationError(f"Recording file not found: {source}")
        if destination.exists():
            raise FileOperationError(f"Recording file already exists: {destination}")

        self.ensure_directory()
        try:
            try:
                os.replace(source, destination)
            except OSError:
                # Different filesystem; fall back to copy + delete
                shutil.move(str(source), str(destination))
        except OSError as e:
            logger.error(f"Error committing recording {source} -> {destination}: {e}")
            raise FileOperationError(f"Failed to move recording into storage: {e}") from e

        logger.info(f"Committed recording: {destination}")
        return str(destination)

    def exists(self, location: str) -> bool:
        return Path(location).is_file()

    def size_of(self, location: str) -> Optional[int]:
        """Best-effort size in bytes; None when the file is inaccessible."""
        try:
            return Path(location).stat().st_size
        except OSError as e:
            logger.debug(f"Could not stat {location}: {e}")
            return None

    def delete(self, location: str) -> None:
        """Delete a file. Deleting a file that does not exist is not an error."""
        try:
            Path(location).unlink()
            logger.info(f"Deleted recording file: {location}")
        except FileNotFoundError:
            logger.debug(f"Delete skipped, file already gone: {location}")
        except OSError as e:
            logger.error(f"Error deleting {location}: {e}")
            raise FileOperationError(f"Failed to delete {location}: {e}") from e

    def list_recordings(self) -> List[str]:
        """List audio files in the recordings directory, sorted by name."""
        if not self.recordings_dir.is_dir():
            return []
        return sorted(
            str(path) for path in self.recordings_dir.iterdir()
            if path.is_file() and path.suffix == self.extension
        )

    def find_orphans(self, known_locations: Iterable[str]) -> List[str]:
        """Audio files in the directory that no catalog entry references."""
        known = {str(Path(location)) for location in known_locations}
        return [path for path in self.list_recordings() if path not in known]

    def get_storage_stats(self) -> Dict[str, Any]:
        """Get storage usage statistics.

        Returns:
            Dictionary with storage statistics
        """
        total_size = 0
        files = self.list_recordings()
        for path in files:
            total_size += self.size_of(path) or 0

        return {
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "audio_files": len(files),
            "recordings_directory": str(self.recordings_dir),
        }
