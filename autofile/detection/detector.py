"""
Content-based file type detection.

Reads a bounded prefix of the file and tests the signature table in
priority order; the first match wins. When no signature matches (or the
file cannot be read) the lower-case extension decides, and when that is
unknown too the result is ``TypeLabel.UNKNOWN``. Detection never raises.
"""

import logging
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..core.types import DetectedType, DetectionProvenance, TypeLabel
from .signatures import EXTENSION_TYPES, PREFIX_LENGTH, SIGNATURES, FileSignature

logger = logging.getLogger(__name__)

_NOT_LISTED = object()


class TypeDetector:
    """Classify files by signature with extension fallback."""

    def __init__(
        self,
        signatures: Sequence[FileSignature] = SIGNATURES,
        extension_types: Optional[Dict[str, TypeLabel]] = None,
        prefix_length: int = PREFIX_LENGTH,
    ):
        """
        Initialize detector.

        Args:
            signatures: Signature table in priority order
            extension_types: Extension table (defaults to EXTENSION_TYPES)
            prefix_length: Number of leading bytes to read
        """
        self.signatures = tuple(signatures)
        self.extension_types = (
            EXTENSION_TYPES if extension_types is None else extension_types
        )
        self.prefix_length = max(
            [prefix_length] + [sig.required_length for sig in self.signatures]
        )

    def detect(self, path: Path) -> DetectedType:
        """
        Detect the semantic type of a file.

        Args:
            path: File to classify

        Returns:
            Detected type with provenance
        """
        path = Path(path)

        try:
            prefix = self._read_prefix(path)
        except OSError as e:
            logger.debug(f"Could not read {path} ({e}), falling back to extension")
            prefix = b""

        if prefix:
            signature = self.match_signature(path, prefix)
            if signature is not None:
                logger.debug(
                    f"MIME {signature.mime_type} | {path.name} matched "
                    f"signature {signature.label.value}"
                )
                return DetectedType(
                    label=signature.label,
                    provenance=DetectionProvenance.SIGNATURE,
                    mime_type=signature.mime_type,
                    extension=_extension(path),
                )

        logger.debug(f"No signature matched {path.name}, falling back to extension")
        return self.detect_by_extension(path)

    def detect_by_extension(self, path: Path) -> DetectedType:
        """Guess the type from the file extension alone."""
        extension = _extension(Path(path))
        label = self.extension_types.get(extension)

        if label is None:
            return DetectedType(
                label=TypeLabel.UNKNOWN,
                provenance=DetectionProvenance.UNKNOWN,
                extension=extension,
            )

        return DetectedType(
            label=label,
            provenance=DetectionProvenance.EXTENSION,
            extension=extension,
        )

    def match_signature(self, path: Path, prefix: bytes) -> Optional[FileSignature]:
        """
        Return the first signature matching ``prefix``.

        ZIP member names are listed at most once, and only when a signature
        with container markers matches the leading bytes.
        """
        members = _NOT_LISTED

        for signature in self.signatures:
            if not signature.matches_prefix(prefix):
                continue

            if signature.zip_markers:
                if members is _NOT_LISTED:
                    members = _zip_members(path)
                if not signature.matches_members(members, prefix):
                    continue

            return signature

        return None

    def _read_prefix(self, path: Path) -> bytes:
        with open(path, "rb") as f:
            return f.read(self.prefix_length)


def _extension(path: Path) -> str:
    return path.suffix.lower().lstrip(".")


def _zip_members(path: Path) -> Optional[List[str]]:
    try:
        with zipfile.ZipFile(path) as archive:
            return archive.namelist()
    except (zipfile.BadZipFile, OSError, EOFError, ValueError) as e:
        # ValueError covers UnicodeDecodeError from names flagged UTF-8 that are not
        logger.debug(f"Could not list ZIP members of {path}: {e}")
        return None
