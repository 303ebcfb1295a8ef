"""Abstract device APIs consumed by the recording and playback engines."""

from abc import ABC, abstractmethod

from ..models.audio import CaptureSettings, RecordingStatus, PlaybackStatus


class MicrophoneDevice(ABC):
    """Microphone capture device. At most one capture is open at a time."""

    @abstractmethod
    def request_permission(self) -> bool:
        """Ask for microphone access.

        Returns:
            True if capture is allowed, False if refused
        """
        pass

    @abstractmethod
    def start(self, location: str, settings: CaptureSettings) -> None:
        """Open the input exclusively and begin capturing into `location`."""
        pass

    @abstractmethod
    def pause(self) -> None:
        """Stop accumulating audio without releasing the input."""
        pass

    @abstractmethod
    def resume(self) -> None:
        """Continue accumulating audio after a pause."""
        pass

    @abstractmethod
    def stop(self) -> int:
        """Finalize the file, release the input.

        Returns:
            Captured duration in milliseconds, pauses excluded
        """
        pass

    @abstractmethod
    def status(self) -> RecordingStatus:
        """Current capture status."""
        pass


class OutputDevice(ABC):
    """Audio output for one loaded resource."""

    # Whether set_rate keeps the original pitch
    preserves_pitch = False

    @abstractmethod
    def open(self, location: str) -> None:
        """Load an audio resource.

        Raises:
            LoadFailureError: If the resource is missing, unreadable or corrupt
        """
        pass

    @abstractmethod
    def play(self) -> None:
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop output and rewind to the start."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Unload the resource and release the output."""
        pass

    @abstractmethod
    def seek(self, position_ms: int) -> None:
        """Move to a position; out-of-range values are clamped."""
        pass

    @abstractmethod
    def set_rate(self, rate: float) -> None:
        pass

    @abstractmethod
    def status(self) -> PlaybackStatus:
        """Current status. `did_just_finish` is reported once per natural end."""
        pass
