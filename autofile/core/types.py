"""
Type definitions for the organizer pipeline.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TypeLabel(str, Enum):
    """Semantic file type produced by detection."""

    # Documents
    PDF = "pdf"
    DOCX = "docx"
    XLSX = "xlsx"
    PPTX = "pptx"
    ODT = "odt"
    ODS = "ods"
    ODP = "odp"
    EPUB = "epub"
    MS_OFFICE = "ms_office"  # Legacy OLE2 .doc/.xls/.ppt
    RTF = "rtf"
    TEXT = "text"
    FONT = "font"

    # Images
    PNG = "png"
    JPEG = "jpeg"
    GIF = "gif"
    BMP = "bmp"
    TIFF = "tiff"
    WEBP = "webp"
    HEIC = "heic"
    AVIF = "avif"
    ICO = "ico"
    PSD = "psd"
    SVG = "svg"

    # Videos
    MP4 = "mp4"
    MOV = "mov"
    MKV = "mkv"
    WEBM = "webm"
    AVI = "avi"
    FLV = "flv"
    WMV = "wmv"
    MPEG = "mpeg"

    # Audio
    MP3 = "mp3"
    WAV = "wav"
    FLAC = "flac"
    OGG = "ogg"
    M4A = "m4a"
    AAC = "aac"
    WMA = "wma"
    OPUS = "opus"

    # Archives
    ZIP = "zip"
    RAR = "rar"
    SEVEN_ZIP = "7z"
    GZIP = "gzip"
    BZIP2 = "bzip2"
    XZ = "xz"
    TAR = "tar"

    # Code
    SOURCE_CODE = "source_code"
    SCRIPT = "script"

    UNKNOWN = "unknown"


class DetectionProvenance(str, Enum):
    """How a type was determined."""

    SIGNATURE = "signature"  # Authoritative: leading bytes matched
    EXTENSION = "extension"  # Fallback: guessed from the file name
    UNKNOWN = "unknown"


class Category(str, Enum):
    """Coarse classification that selects a destination root."""

    DOCUMENTS = "Documents"
    IMAGES = "Images"
    VIDEOS = "Videos"
    AUDIO = "Audio"
    ARCHIVES = "Archives"
    CODE = "Code"
    OTHER = "Other"


class DetectedType(BaseModel):
    """Outcome of type detection for one file."""

    label: TypeLabel = Field(default=TypeLabel.UNKNOWN, description="Semantic type")
    provenance: DetectionProvenance = Field(
        default=DetectionProvenance.UNKNOWN,
        description="Whether the type came from a signature or the extension",
    )
    mime_type: Optional[str] = Field(default=None, description="MIME type if known")
    extension: str = Field(
        default="", description="Lower-case extension without the dot"
    )

    model_config = ConfigDict(frozen=True)

    @property
    def by_signature(self) -> bool:
        return self.provenance == DetectionProvenance.SIGNATURE

    @property
    def is_unknown(self) -> bool:
        return self.label == TypeLabel.UNKNOWN


class MoveKind(str, Enum):
    """How a file reached its destination."""

    ATOMIC = "atomic"
    COPY_FALLBACK = "copy-fallback"


class MoveState(str, Enum):
    """States a single relocation passes through."""

    PENDING = "pending"
    RESOLVING_NAME = "resolving_name"
    ATOMIC_MOVE = "atomic_move"
    COPY_VERIFY_DELETE = "copy_verify_delete"
    DONE = "done"
    FAILED = "failed"


class MoveOutcome(BaseModel):
    """Result of relocating a file."""

    source_path: Path = Field(description="Where the file was")
    final_path: Path = Field(description="Where the file is now")
    move_kind: MoveKind = Field(description="Atomic rename or copy fallback")
    renamed: bool = Field(
        default=False, description="Whether a conflict rename occurred"
    )
    conflict_suffix: Optional[int] = Field(
        default=None, description="Numeric suffix used to resolve a name conflict"
    )
    state: MoveState = Field(default=MoveState.DONE)


class OutcomeStatus(str, Enum):
    """Per-file result reported to the observability sink."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Classification of a per-file failure."""

    STAGE_FAILED = "preprocessor_stage_failed"
    CONFLICT_EXHAUSTED = "conflict_resolution_exhausted"
    VERIFY_FAILED = "cross_filesystem_verify_failed"
    DESTINATION_UNCREATABLE = "destination_uncreatable"
    PERMISSION_DENIED = "permission_denied"
    SOURCE_VANISHED = "source_vanished"
    IO_ERROR = "io_error"
    UNEXPECTED = "unexpected"


class OutcomeRecord(BaseModel):
    """Structured outcome of processing one arriving file."""

    source_path: Path = Field(description="Path as it arrived")
    final_path: Optional[Path] = Field(default=None, description="Destination path")
    status: OutcomeStatus = Field(default=OutcomeStatus.SUCCESS)
    category: Optional[Category] = Field(default=None)
    type_label: Optional[TypeLabel] = Field(default=None)
    detection_provenance: Optional[DetectionProvenance] = Field(default=None)
    move_kind: Optional[MoveKind] = Field(default=None)
    conflict_suffix: Optional[int] = Field(default=None)
    stages_applied: List[str] = Field(default_factory=list)
    stage_failures: List[str] = Field(default_factory=list)
    error_kind: Optional[ErrorKind] = Field(default=None)
    error: Optional[str] = Field(default=None)
    dry_run: bool = Field(default=False)
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS
