"""Recording engine: microphone lifecycle with polled duration tracking."""

import asyncio
import logging
from typing import Callable, Optional

from ..errors import VoiceNotesError, PermissionDeniedError, DeviceUnavailableError, FileOperationError
from ..models.audio import CapturePreset, CaptureResult, RecordingStatus
from ..models.session import RecordingPhase
from ..storage.file_manager import FileManager
from .devices import MicrophoneDevice
from .periodic import PeriodicTask

logger = logging.getLogger(__name__)


class RecordingEngine:
    """Wraps the microphone device: start, pause, resume, stop and cancel.

    Live duration is read from the device every `poll_interval` seconds while
    capturing, never derived from wall-clock time, so paused intervals do not
    count. The poller only runs in the RECORDING phase.
    """

    def __init__(self,
                 device: MicrophoneDevice,
                 file_manager: FileManager,
                 preset: CapturePreset = CapturePreset.HIGH_QUALITY,
                 poll_interval: float = 0.1,
                 on_duration: Optional[Callable[[int], None]] = None):
        """Initialize recording engine.

        Args:
            device: Microphone capture device
            file_manager: Allocates and discards temporary capture files
            preset: Fixed capture encoding preset
            poll_interval: Seconds between duration polls
            on_duration: Called with the polled duration in milliseconds
        """
        self.device = device
        self.file_manager = file_manager
        self.preset = preset
        self.poll_interval = poll_interval
        self.on_duration = on_duration

        self.phase = RecordingPhase.IDLE
        self.duration_ms = 0
        self.temp_location: Optional[str] = None
        self.poller: Optional[PeriodicTask] = None

    @property
    def is_active(self) -> bool:
        return self.phase in (RecordingPhase.RECORDING, RecordingPhase.PAUSED)

    def _start_poller(self) -> None:
        self.poller = PeriodicTask("recording-duration", self.poll_interval, self._poll_duration)
        self.poller.start()

    async def _stop_poller(self) -> None:
        poller, self.poller = self.poller, None
        if poller:
            await poller.stop()

    async def _poll_duration(self) -> None:
        status = await asyncio.to_thread(self.device.status)
        # Phase may have changed while the device call was suspended
        if self.phase != RecordingPhase.RECORDING:
            return
        self.duration_ms = status.duration_ms
        if self.on_duration:
            self.on_duration(status.duration_ms)

    async def start(self) -> None:
        """Request permission and begin capture.

        Raises:
            PermissionDeniedError: If microphone access is refused
            DeviceUnavailableError: If already recording or the device fails
        """
        if self.phase != RecordingPhase.IDLE:
            raise DeviceUnavailableError("Already recording")

        try:
            granted = await asyncio.to_thread(self.device.request_permission)
        except Exception as e:
            logger.error(f"Permission request failed: {e}")
            raise DeviceUnavailableError(f"Failed to request microphone permission: {e}") from e

        if not granted:
            raise PermissionDeniedError("Microphone permission is required to record audio")

        location = self.file_manager.temp_location()
        try:
            await asyncio.to_thread(self.device.start, location, self.preset.value)
        except Exception as e:
            self._discard(location)
            if isinstance(e, VoiceNotesError):
                raise
            logger.error(f"Error starting capture: {e}")
            raise DeviceUnavailableError(f"Failed to start recording: {e}") from e

        self.temp_location = location
        self.duration_ms = 0
        self.phase = RecordingPhase.RECORDING
        self._start_poller()
        logger.info(f"Recording started ({self.preset.name}) -> {location}")

    async def pause(self) -> bool:
        if self.phase != RecordingPhase.RECORDING:
            logger.warning(f"Cannot pause while {self.phase.value}")
            return False

        await self._stop_poller()
        try:
            await asyncio.to_thread(self.device.pause)
        except Exception as e:
            logger.error(f"Error pausing capture: {e}")
            self._start_poller()
            raise DeviceUnavailableError(f"Failed to pause recording: {e}") from e

        self.phase = RecordingPhase.PAUSED
        logger.info("Recording paused")
        return True

    async def resume(self) -> bool:
        if self.phase != RecordingPhase.PAUSED:
            logger.warning(f"Cannot resume while {self.phase.value}")
            return False

        try:
            await asyncio.to_thread(self.device.resume)
        except Exception as e:
            logger.error(f"Error resuming capture: {e}")
            raise DeviceUnavailableError(f"Failed to resume recording: {e}") from e

        self.phase = RecordingPhase.RECORDING
        self._start_poller()
        logger.info("Recording resumed")
        return True

    async def stop(self) -> Optional[CaptureResult]:
        """Finalize the capture and release the microphone.

        Returns:
            Temporary location and measured duration, or None if idle
        """
        if not self.is_active:
            return None

        location = self.temp_location
        self.phase = RecordingPhase.STOPPING
        try:
            await self._stop_poller()
            duration_ms = await asyncio.to_thread(self.device.stop)
        except Exception as e:
            logger.error(f"Error stopping capture: {e}")
            self._discard(location)
            raise DeviceUnavailableError(f"Failed to stop recording: {e}") from e
        finally:
            self._reset()

        self.duration_ms = duration_ms
        logger.info(f"Recording stopped: {duration_ms} ms at {location}")
        return CaptureResult(location=location, duration_ms=duration_ms)

    async def cancel(self) -> None:
        """Stop capturing and discard the temporary file. Idempotent."""
        if not self.is_active:
            return

        location = self.temp_location
        self.phase = RecordingPhase.STOPPING
        try:
            await self._stop_poller()
            await asyncio.to_thread(self.device.stop)
        except Exception as e:
            logger.warning(f"Error stopping capture during cancel: {e}")
        finally:
            self._reset()
            self._discard(location)
        logger.info("Recording cancelled")

    def _reset(self) -> None:
        self.phase = RecordingPhase.IDLE
        self.temp_location = None

    def _discard(self, location: Optional[str]) -> None:
        if not location:
            return
        try:
            self.file_manager.delete(location)
        except FileOperationError as e:
            logger.warning(f"Could not discard temp capture {location}: {e}")

    def status(self) -> RecordingStatus:
        return RecordingStatus(
            is_recording=self.phase == RecordingPhase.RECORDING,
            is_paused=self.phase == RecordingPhase.PAUSED,
            duration_ms=self.duration_ms,
        )
