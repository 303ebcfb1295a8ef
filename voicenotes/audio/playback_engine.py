"""Playback engine: output device lifecycle with pushed status events."""

import asyncio
import itertools
import math
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..errors import VoiceNotesError, LoadFailureError, DeviceUnavailableError, InvalidArgumentError
from ..models.audio import PlaybackStatus
from ..models.events import PlaybackStatusEvent
from .devices import OutputDevice
from .periodic import PeriodicTask
from .status_pub import StatusPublisher

logger = logging.getLogger(__name__)

# Shared across engines so a token never identifies two handles in one process
_tokens = itertools.count(1)


def is_valid_rate(rate: float) -> bool:
    """Playback speed must be a finite positive multiplier."""
    return math.isfinite(rate) and rate > 0


@dataclass
class PlaybackHandle:
    """A loaded audio resource. Only the engine touches the device."""
    token: int
    note_id: Optional[str]
    location: str
    device: OutputDevice
    released: bool = False
    # Set once the device has been closed
    closed: asyncio.Event = field(default_factory=asyncio.Event, repr=False, compare=False)


class PlaybackEngine:
    """Wraps the audio output: load, play, pause, stop, seek and rate changes.

    While a handle is loaded, its status is polled every `status_interval`
    seconds and published as a PlaybackStatusEvent. On natural end of track
    the engine rewinds, releases the device and publishes a final event with
    `did_just_finish` set, without caller intervention.
    """

    def __init__(self,
                 device_factory: Callable[[], OutputDevice],
                 publisher: StatusPublisher,
                 status_interval: float = 0.1):
        """Initialize playback engine.

        Args:
            device_factory: Creates an output device for each load
            publisher: Delivers status events to subscribers
            status_interval: Seconds between status updates
        """
        self.device_factory = device_factory
        self.publisher = publisher
        self.status_interval = status_interval

        self.handle: Optional[PlaybackHandle] = None
        # Most recently loaded handle, kept until its device is closed
        self.last_handle: Optional[PlaybackHandle] = None
        self.status_task: Optional[PeriodicTask] = None

    async def load(self,
                   location: str,
                   note_id: Optional[str] = None,
                   start_playing: bool = True,
                   rate: float = 1.0) -> PlaybackHandle:
        """Open an audio resource, releasing any previously loaded one first.

        Raises:
            InvalidArgumentError: If rate is not a finite positive number
            LoadFailureError: If the resource is unreadable or corrupt
            DeviceUnavailableError: If the output cannot be started
        """
        if not is_valid_rate(rate):
            raise InvalidArgumentError(f"Invalid playback rate: {rate}")

        # Also waits for a device still closing after end of track
        previous = self.handle or self.last_handle
        if previous is not None:
            await self.stop(previous)

        device = self.device_factory()
        try:
            await asyncio.to_thread(device.open, location)
        except VoiceNotesError:
            raise
        except Exception as e:
            logger.error(f"Error loading {location}: {e}")
            raise LoadFailureError(f"Failed to load {location}: {e}") from e

        handle = PlaybackHandle(token=next(_tokens), note_id=note_id, location=location, device=device)
        try:
            if rate != 1.0:
                await asyncio.to_thread(device.set_rate, rate)
            if start_playing:
                await asyncio.to_thread(device.play)
        except Exception as e:
            logger.error(f"Error starting playback of {location}: {e}")
            await self._close_device(handle)
            raise DeviceUnavailableError(f"Failed to start playback: {e}") from e

        self.handle = handle
        self.last_handle = handle
        self.status_task = PeriodicTask(
            f"playback-status-{handle.token}", self.status_interval,
            lambda: self._poll_status(handle))
        self.status_task.start()
        logger.info(f"Loaded {location} (token {handle.token}, rate {rate})")
        return handle

    async def play(self, handle: PlaybackHandle) -> bool:
        if handle.released:
            return False
        await self._device_call(handle, handle.device.play, "play")
        # Released while the device call was in flight
        return not handle.released

    async def pause(self, handle: PlaybackHandle) -> bool:
        if handle.released:
            return False
        await self._device_call(handle, handle.device.pause, "pause")
        return not handle.released

    async def seek(self, handle: PlaybackHandle, position_ms: int) -> bool:
        """Seek; out-of-range positions are clamped by the device."""
        if handle.released:
            return False
        await self._device_call(handle, lambda: handle.device.seek(int(position_ms)), "seek")
        return not handle.released

    async def set_rate(self, handle: PlaybackHandle, rate: float) -> bool:
        if not is_valid_rate(rate):
            raise InvalidArgumentError(f"Invalid playback rate: {rate}")
        if handle.released:
            return False
        if not handle.device.preserves_pitch:
            logger.debug("Output device does not preserve pitch at non-unit rates")
        await self._device_call(handle, lambda: handle.device.set_rate(rate), "set rate")
        return not handle.released

    async def stop(self, handle: PlaybackHandle) -> None:
        """Stop and unload.

        Stopping an already released handle only waits until its device is closed.
        """
        if handle.released:
            await handle.closed.wait()
            return
        handle.released = True
        await self._detach(handle)
        try:
            await asyncio.to_thread(handle.device.stop)
        except Exception as e:
            logger.warning(f"Error stopping playback (token {handle.token}): {e}")
        await self._close_device(handle)
        logger.info(f"Playback stopped and unloaded (token {handle.token})")

    async def _device_call(self, handle: PlaybackHandle, call: Callable[[], None], action: str) -> None:
        try:
            await asyncio.to_thread(call)
        except Exception as e:
            if handle.released:
                # The device was closed underneath the call
                logger.debug(f"Playback {action} interrupted by release (token {handle.token}): {e}")
                return
            logger.error(f"Error during playback {action} (token {handle.token}): {e}")
            raise DeviceUnavailableError(f"Failed to {action} playback: {e}") from e

    async def _detach(self, handle: PlaybackHandle) -> None:
        if self.handle is handle:
            self.handle = None
            status_task, self.status_task = self.status_task, None
            if status_task:
                await status_task.stop()

    async def _close_device(self, handle: PlaybackHandle) -> None:
        try:
            await asyncio.to_thread(handle.device.close)
        except Exception as e:
            logger.warning(f"Error releasing output device (token {handle.token}): {e}")
        finally:
            handle.closed.set()
            if self.last_handle is handle:
                self.last_handle = None

    async def _poll_status(self, handle: PlaybackHandle) -> None:
        if handle.released:
            return
        status = await asyncio.to_thread(handle.device.status)
        # A stop may have happened while the status call was suspended
        if handle.released:
            return

        if status.did_just_finish:
            await self._finish(handle, status)
            return

        self._publish(handle, status)

    async def _finish(self, handle: PlaybackHandle, status: PlaybackStatus) -> None:
        handle.released = True
        await self._detach(handle)
        await self._close_device(handle)
        logger.info(f"Playback finished (token {handle.token})")
        self._publish(handle, PlaybackStatus(
            is_loaded=False,
            is_playing=False,
            position_ms=0,
            duration_ms=status.duration_ms,
            rate=status.rate,
            did_just_finish=True,
        ))

    def _publish(self, handle: PlaybackHandle, status: PlaybackStatus) -> None:
        self.publisher.publish_status_event(
            PlaybackStatusEvent(token=handle.token, note_id=handle.note_id, status=status))
