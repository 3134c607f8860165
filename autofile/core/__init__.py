"""Core types, errors, and configuration."""

from .config import Settings, load_settings
from .errors import (
    AutofileError,
    ConfigurationError,
    ConflictResolutionExhaustedError,
    CrossFilesystemVerifyError,
    DestinationUncreatableError,
    PermissionDeniedError,
    PreprocessorStageError,
    RelocationError,
    SourceVanishedError,
    WatchError,
)
from .types import (
    Category,
    DetectedType,
    DetectionProvenance,
    ErrorKind,
    MoveKind,
    MoveOutcome,
    MoveState,
    OutcomeRecord,
    OutcomeStatus,
    TypeLabel,
)

__all__ = [
    "Settings",
    "load_settings",
    "AutofileError",
    "ConfigurationError",
    "ConflictResolutionExhaustedError",
    "CrossFilesystemVerifyError",
    "DestinationUncreatableError",
    "PermissionDeniedError",
    "PreprocessorStageError",
    "RelocationError",
    "SourceVanishedError",
    "WatchError",
    "Category",
    "DetectedType",
    "DetectionProvenance",
    "ErrorKind",
    "MoveKind",
    "MoveOutcome",
    "MoveState",
    "OutcomeRecord",
    "OutcomeStatus",
    "TypeLabel",
]
