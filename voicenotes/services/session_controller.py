"""Session controller: the state machine composing recording, playback and the catalog."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from ..audio.playback_engine import PlaybackEngine, PlaybackHandle, is_valid_rate
from ..audio.recording_engine import RecordingEngine
from ..audio.status_pub import StatusPublisher
from ..errors import (
    VoiceNotesError,
    PermissionDeniedError,
    PersistenceError,
    NotFoundError,
    InvalidArgumentError,
)
from ..models.events import PlaybackStatusEvent
from ..models.notes import VoiceNote
from ..models.session import RecordingPhase, PlaybackPhase, RecordingSession, PlaybackSession
from ..storage.catalog_store import CatalogStore
from ..storage.file_manager import FileManager
from ..utils.formatting import generate_recording_id, generate_default_name, utc_timestamp

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(days=7)


class SessionController:
    """Owns the recording and playback sessions and the in-memory catalog.

    The controller is the only writer of the catalog and the only holder of
    device handles. Every public coroutine runs under one lock, so device
    operations never interleave. Failures never propagate to the caller:
    they are logged, stored in the `error` slot for the presentation layer,
    and the method returns a failure value (False or None).
    """

    def __init__(self,
                 catalog_store: CatalogStore,
                 file_manager: FileManager,
                 recording_engine: RecordingEngine,
                 playback_engine: PlaybackEngine,
                 index_write_attempts: int = 2,
                 retry_delay: float = 0.05,
                 default_rate: float = 1.0):
        """Initialize session controller.

        Args:
            catalog_store: Persistence of the voice note index
            file_manager: Owner of the recordings directory
            recording_engine: Microphone engine
            playback_engine: Output engine; its publisher delivers status events
            index_write_attempts: Index writes tried before a save reports failure
            retry_delay: Seconds between index write attempts
            default_rate: Initial playback speed multiplier
        """
        self.catalog_store = catalog_store
        self.file_manager = file_manager
        self.recording_engine = recording_engine
        self.playback_engine = playback_engine
        self.index_write_attempts = max(1, index_write_attempts)
        self.retry_delay = retry_delay

        self.recording = RecordingSession()
        self.playback = PlaybackSession(rate=default_rate)
        self._notes: List[VoiceNote] = []
        self._playback_handle: Optional[PlaybackHandle] = None

        self.error: Optional[str] = None
        self.last_error: Optional[VoiceNotesError] = None
        self.is_loading = True

        self._lock = asyncio.Lock()
        self._listeners: List[Callable[["SessionController"], None]] = []

        self.recording_engine.on_duration = self._on_recording_duration
        self.publisher: StatusPublisher = playback_engine.publisher
        self.publisher.subscribe(self._on_playback_status)
        self._subscribed = True

        logger.info("SessionController initialized")

    # State exposed to the presentation layer

    @property
    def notes(self) -> Tuple[VoiceNote, ...]:
        return tuple(self._notes)

    @property
    def currently_playing_id(self) -> Optional[str]:
        return self.playback.note_id

    @property
    def needs_discard_confirmation(self) -> bool:
        """Discarding needs confirmation unless no recording was started."""
        return self.recording.phase != RecordingPhase.IDLE

    def get_note(self, note_id: str) -> Optional[VoiceNote]:
        for note in self._notes:
            if note.id == note_id:
                return note
        return None

    def add_listener(self, listener: Callable[["SessionController"], None]) -> None:
        """Register a callback invoked after every state change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[["SessionController"], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def clear_error(self) -> None:
        self.error = None
        self.last_error = None
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"State listener failed: {e}")

    def _fail(self, message: str, error: Optional[VoiceNotesError] = None) -> None:
        if error is not None:
            logger.error(f"{message}: {error}")
        else:
            logger.error(message)
        self.error = message
        self.last_error = error
        self._notify()

    # Catalog

    async def initialize(self) -> bool:
        """Create the recordings directory and load the catalog."""
        async with self._lock:
            self.is_loading = True
            try:
                await asyncio.to_thread(self.file_manager.ensure_directory)
                self._notes = await asyncio.to_thread(self.catalog_store.load)
                return True
            except VoiceNotesError as e:
                self._fail("Failed to load voice notes", e)
                return False
            finally:
                self.is_loading = False
                self._notify()

    async def load_notes(self) -> bool:
        """Reload the catalog from storage, pruning notes whose file is gone."""
        async with self._lock:
            try:
                self._notes = await asyncio.to_thread(self.catalog_store.load)
            except VoiceNotesError as e:
                self._fail("Failed to load voice notes", e)
                return False
            self._notify()
            return True

    async def _persist(self, notes: Sequence[VoiceNote], attempts: int = 1) -> Optional[PersistenceError]:
        """Write the index, retrying up to `attempts` times. Returns the last error."""
        last_error = None
        for attempt in range(1, attempts + 1):
            try:
                await asyncio.to_thread(self.catalog_store.save, list(notes))
                return None
            except PersistenceError as e:
                last_error = e
                logger.warning(f"Index write attempt {attempt}/{attempts} failed: {e}")
                if attempt < attempts:
                    await asyncio.sleep(self.retry_delay)
        return last_error

    # Recording

    def _on_recording_duration(self, duration_ms: int) -> None:
        if self.recording.phase != RecordingPhase.RECORDING:
            return
        self.recording.elapsed_ms = duration_ms
        self._notify()

    async def start_recording(self) -> bool:
        """Stop any playback, then start capturing."""
        async with self._lock:
            self.error = None
            if self.recording.phase != RecordingPhase.IDLE:
                self._fail("A recording is already in progress")
                return False

            await self._release_playback()

            try:
                await self.recording_engine.start()
            except PermissionDeniedError as e:
                self._fail("Microphone permission is required to record audio", e)
                return False
            except VoiceNotesError as e:
                self._fail("Failed to start recording", e)
                return False

            self.recording.phase = RecordingPhase.RECORDING
            self.recording.started_at = datetime.now(timezone.utc)
            self.recording.elapsed_ms = 0
            self._notify()
            return True

    async def pause_recording(self) -> bool:
        async with self._lock:
            try:
                paused = await self.recording_engine.pause()
            except VoiceNotesError as e:
                self._fail("Failed to pause recording", e)
                return False
            if paused:
                self.recording.phase = RecordingPhase.PAUSED
                self._notify()
            return paused

    async def resume_recording(self) -> bool:
        async with self._lock:
            try:
                resumed = await self.recording_engine.resume()
            except VoiceNotesError as e:
                self._fail("Failed to resume recording", e)
                return False
            if resumed:
                self.recording.phase = RecordingPhase.RECORDING
                self._notify()
            return resumed

    async def stop_recording(self, name: Optional[str] = None) -> Optional[VoiceNote]:
        """Stop capturing, commit the file and prepend a new note to the catalog.

        Args:
            name: Label for the note; blank or None uses the default name

        Returns:
            The new note, or None if nothing was recorded or the commit failed.
            If the file was committed but the index could not be written after
            retrying, the note is still returned and kept in memory, and the
            error slot is set.
        """
        async with self._lock:
            if self.recording.is_active:
                self.recording.phase = RecordingPhase.STOPPING
                self._notify()

            try:
                capture = await self.recording_engine.stop()
            except VoiceNotesError as e:
                self.recording.reset()
                self._fail("Failed to save recording", e)
                return None

            if capture is None:
                self.recording.reset()
                self._fail("Nothing to save", NotFoundError("No active recording"))
                return None

            note_id = generate_recording_id(note.id for note in self._notes)
            try:
                location = await asyncio.to_thread(self.file_manager.commit, capture.location, note_id)
            except VoiceNotesError as e:
                await self._discard_capture(capture.location)
                self.recording.reset()
                self._fail("Failed to save recording", e)
                return None

            size = await asyncio.to_thread(self.file_manager.size_of, location)
            label = name.strip() if name else ""
            note = VoiceNote(
                id=note_id,
                name=label or generate_default_name(),
                location=location,
                duration_ms=capture.duration_ms,
                created_at=utc_timestamp(),
                size_bytes=size,
            )

            self._notes = [note] + self._notes
            self.recording.reset()

            error = await self._persist(self._notes, self.index_write_attempts)
            if error is not None:
                self._fail("Recording saved but the index could not be written", error)
            else:
                logger.info(f"Saved voice note {note.id} '{note.name}' ({note.duration_ms} ms)")
                self._notify()
            return note

    async def _discard_capture(self, location: str) -> None:
        try:
            await asyncio.to_thread(self.file_manager.delete, location)
        except VoiceNotesError as e:
            logger.warning(f"Could not discard capture {location}: {e}")

    async def cancel_recording(self) -> None:
        """Discard the current recording. Nothing to cancel is not an error."""
        async with self._lock:
            try:
                await self.recording_engine.cancel()
            except VoiceNotesError as e:
                logger.warning(f"Error cancelling recording: {e}")
            self.recording.reset()
            self._notify()

    # Playback

    def _is_current(self, handle: PlaybackHandle) -> bool:
        """False once the handle was released or replaced, e.g. by end of track."""
        return self._playback_handle is handle and not handle.released

    async def _release_playback(self) -> None:
        handle, self._playback_handle = self._playback_handle, None
        self.playback.reset()
        if handle is not None:
            await self.playback_engine.stop(handle)
            self._notify()

    async def _play_note(self, note_id: str) -> bool:
        note = self.get_note(note_id)
        if note is None:
            self._fail("Voice note not found", NotFoundError(f"Unknown voice note: {note_id}"))
            return False

        self.error = None
        await self._release_playback()

        try:
            handle = await self.playback_engine.load(
                note.location, note_id=note.id, start_playing=True, rate=self.playback.rate)
        except VoiceNotesError as e:
            self._fail("Failed to play voice note", e)
            return False

        self._playback_handle = handle
        self.playback.note_id = note.id
        self.playback.phase = PlaybackPhase.PLAYING
        self.playback.position_ms = 0
        self.playback.duration_ms = note.duration_ms
        self.playback.token = handle.token
        self._notify()
        return True

    async def play_note(self, note_id: str) -> bool:
        """Stop whatever is playing, then play the note from the start."""
        async with self._lock:
            return await self._play_note(note_id)

    async def toggle_playback(self, note_id: str) -> bool:
        """Pause if playing this note, resume if paused on it, otherwise play it."""
        async with self._lock:
            if self._playback_handle is not None and self.playback.note_id == note_id:
                if self.playback.phase == PlaybackPhase.PLAYING:
                    return await self._pause_playback()
                if self.playback.phase == PlaybackPhase.PAUSED:
                    return await self._resume_playback()
            return await self._play_note(note_id)

    async def _pause_playback(self) -> bool:
        handle = self._playback_handle
        if handle is None:
            return False
        try:
            paused = await self.playback_engine.pause(handle)
        except VoiceNotesError as e:
            self._fail("Failed to pause playback", e)
            return False
        if not paused or not self._is_current(handle):
            return False
        self.playback.phase = PlaybackPhase.PAUSED
        self._notify()
        return True

    async def _resume_playback(self) -> bool:
        handle = self._playback_handle
        if handle is None:
            return False
        try:
            resumed = await self.playback_engine.play(handle)
        except VoiceNotesError as e:
            self._fail("Failed to resume playback", e)
            return False
        if not resumed or not self._is_current(handle):
            return False
        self.playback.phase = PlaybackPhase.PLAYING
        self._notify()
        return True

    async def pause_playback(self) -> bool:
        async with self._lock:
            return await self._pause_playback()

    async def resume_playback(self) -> bool:
        async with self._lock:
            return await self._resume_playback()

    async def stop_playback(self) -> None:
        async with self._lock:
            await self._release_playback()
            self._notify()

    async def seek_to(self, position_ms: int) -> bool:
        async with self._lock:
            handle = self._playback_handle
            if handle is None:
                return False
            try:
                sought = await self.playback_engine.seek(handle, position_ms)
            except VoiceNotesError as e:
                self._fail("Failed to seek", e)
                return False
            if not sought or not self._is_current(handle):
                return False
            upper = self.playback.duration_ms or max(position_ms, 0)
            self.playback.position_ms = min(max(int(position_ms), 0), upper)
            self._notify()
            return True

    async def set_playback_rate(self, rate: float) -> bool:
        """Set the speed multiplier; applies now and to later playback."""
        async with self._lock:
            if not is_valid_rate(rate):
                self._fail("Invalid playback rate", InvalidArgumentError(f"Invalid playback rate: {rate}"))
                return False
            handle = self._playback_handle
            if handle is not None:
                try:
                    await self.playback_engine.set_rate(handle, rate)
                except VoiceNotesError as e:
                    self._fail("Failed to change playback rate", e)
                    return False
            self.playback.rate = rate
            self._notify()
            return True

    def _on_playback_status(self, event: PlaybackStatusEvent) -> None:
        """Apply a status event unless it belongs to a superseded handle."""
        if self._playback_handle is None or event.token != self.playback.token:
            logger.debug(f"Ignoring stale playback event (token {event.token})")
            return

        if event.finished:
            logger.info(f"Playback of {event.note_id} finished")
            self._playback_handle = None
            self.playback.reset()
            self._notify()
            return

        self.playback.position_ms = event.status.position_ms
        if event.status.duration_ms:
            self.playback.duration_ms = event.status.duration_ms
        self._notify()

    # Catalog management

    async def delete_note(self, note_id: str) -> bool:
        """Delete a note's file and catalog entry.

        Returns:
            False if the id is unknown (no side effects) or a step failed
        """
        async with self._lock:
            note = self.get_note(note_id)
            if note is None:
                logger.info(f"Delete ignored, unknown voice note: {note_id}")
                return False

            if self.playback.note_id == note_id:
                await self._release_playback()

            try:
                await asyncio.to_thread(self.file_manager.delete, note.location)
            except VoiceNotesError as e:
                self._fail("Failed to delete voice note", e)
                return False

            # The file is gone, so the entry goes even if the index write fails
            self._notes = [n for n in self._notes if n.id != note_id]
            error = await self._persist(self._notes)
            if error is not None:
                self._fail("Failed to delete voice note", error)
                return False

            logger.info(f"Deleted voice note {note_id}")
            self._notify()
            return True

    async def rename_note(self, note_id: str, name: str) -> bool:
        """Change a note's name. Never touches the audio file."""
        async with self._lock:
            new_name = (name or "").strip()
            if not new_name:
                self._fail("Name cannot be empty", InvalidArgumentError("Empty voice note name"))
                return False

            if self.get_note(note_id) is None:
                logger.info(f"Rename ignored, unknown voice note: {note_id}")
                return False

            updated = [n.renamed(new_name) if n.id == note_id else n for n in self._notes]
            error = await self._persist(updated)
            if error is not None:
                self._fail("Failed to rename voice note", error)
                return False

            self._notes = updated
            self._notify()
            return True

    def search_notes(self, query: str) -> List[VoiceNote]:
        """Case-insensitive substring match on names, in catalog order."""
        if not query or not query.strip():
            return list(self._notes)
        lowered = query.lower()
        return [note for note in self._notes if lowered in note.name.lower()]

    def recent_notes(self, query: str = "", now: Optional[datetime] = None) -> List[VoiceNote]:
        """Notes created within the last seven days, filtered by `query`."""
        cutoff = (now or datetime.now(timezone.utc)) - RECENT_WINDOW
        return [note for note in self.search_notes(query) if note.created_datetime >= cutoff]

    def history_notes(self, query: str = "", now: Optional[datetime] = None) -> List[VoiceNote]:
        """Notes older than seven days, filtered by `query`."""
        cutoff = (now or datetime.now(timezone.utc)) - RECENT_WINDOW
        return [note for note in self.search_notes(query) if note.created_datetime < cutoff]

    # Lifecycle

    async def shutdown(self) -> None:
        """Discard any recording in progress, release playback, stop listening."""
        async with self._lock:
            if self.recording_engine.is_active:
                try:
                    await self.recording_engine.cancel()
                except VoiceNotesError as e:
                    logger.warning(f"Error cancelling recording on shutdown: {e}")
            self.recording.reset()
            await self._release_playback()
            if self._subscribed:
                self.publisher.unsubscribe(self._on_playback_status)
                self._subscribed = False
            logger.info("SessionController shut down")
