"""Error taxonomy shared by the storage layer, the audio engines and the controller."""

from enum import Enum


class ErrorKind(Enum):
    """Category of a failure surfaced to the presentation layer."""
    PERMISSION_DENIED = "permission_denied"
    DEVICE_UNAVAILABLE = "device_unavailable"
    LOAD_FAILURE = "load_failure"
    FILE_OPERATION = "file_operation"
    PERSISTENCE = "persistence"
    NOT_FOUND = "not_found"
    INVALID_ARGUMENT = "invalid_argument"


class VoiceNotesError(Exception):
    """Base class for every failure raised by voicenotes services."""

    kind = ErrorKind.DEVICE_UNAVAILABLE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PermissionDeniedError(VoiceNotesError):
    """Microphone access was refused."""
    kind = ErrorKind.PERMISSION_DENIED


class DeviceUnavailableError(VoiceNotesError):
    """An audio device could not be opened, started or stopped."""
    kind = ErrorKind.DEVICE_UNAVAILABLE


class LoadFailureError(VoiceNotesError):
    """An audio resource is missing, unreadable or corrupt."""
    kind = ErrorKind.LOAD_FAILURE


class FileOperationError(VoiceNotesError):
    """Moving, sizing or deleting a recording file failed."""
    kind = ErrorKind.FILE_OPERATION


class PersistenceError(VoiceNotesError):
    """Reading or writing the catalog index failed."""
    kind = ErrorKind.PERSISTENCE


class NotFoundError(VoiceNotesError):
    """An operation referenced an unknown voice note id."""
    kind = ErrorKind.NOT_FOUND


class InvalidArgumentError(VoiceNotesError):
    """A caller supplied an out-of-domain argument, e.g. a non-positive rate."""
    kind = ErrorKind.INVALID_ARGUMENT
