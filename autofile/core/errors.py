"""
Exception hierarchy for per-file and startup failures.

Detection falling back to the extension and unsupported types are not
errors: they surface as ``DetectionProvenance.EXTENSION``/``UNKNOWN`` and
``Category.OTHER`` respectively.
"""

from pathlib import Path
from typing import Optional

from .types import ErrorKind


class AutofileError(Exception):
    """Base class for all autofile errors."""

    kind: ErrorKind = ErrorKind.UNEXPECTED


class ConfigurationError(AutofileError, ValueError):
    """Invalid configuration detected at startup."""


class WatchError(AutofileError):
    """The watched directory cannot be opened."""


class SourceVanishedError(AutofileError):
    """The file disappeared between notification and processing."""

    kind = ErrorKind.SOURCE_VANISHED

    def __init__(self, path: Path):
        super().__init__(f"File no longer exists: {path}")
        self.path = path


class PreprocessorStageError(AutofileError):
    """A preprocessing stage failed to transform a file."""

    kind = ErrorKind.STAGE_FAILED

    def __init__(self, stage: str, path: Path, cause: Optional[BaseException] = None):
        message = f"Stage '{stage}' failed on {path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.stage = stage
        self.path = path
        self.cause = cause


class RelocationError(AutofileError):
    """Moving a file to its destination failed; the source is retained."""

    kind = ErrorKind.IO_ERROR


class ConflictResolutionExhaustedError(RelocationError):
    """No free destination name was found."""

    kind = ErrorKind.CONFLICT_EXHAUSTED


class CrossFilesystemVerifyError(RelocationError):
    """A cross-device copy did not match its source."""

    kind = ErrorKind.VERIFY_FAILED


class DestinationUncreatableError(RelocationError):
    """The destination directory could not be created."""

    kind = ErrorKind.DESTINATION_UNCREATABLE


class PermissionDeniedError(RelocationError):
    """The operating system refused access to the source or destination."""

    kind = ErrorKind.PERMISSION_DENIED
