"""
Safe relocation of files into destination directories.

A move passes through ``PENDING → RESOLVING_NAME → (ATOMIC_MOVE |
COPY_VERIFY_DELETE) → DONE``, or ends in ``FAILED``. At every point the
data lives in the source, the destination, or (briefly, during a
cross-device copy) a hidden temporary file next to the destination; the
source is never removed before a verified copy sits under its final name,
and the final name never shows an empty or partial file.
"""

import errno
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Tuple

from ..core.config import Settings
from ..core.errors import (
    CrossFilesystemVerifyError,
    DestinationUncreatableError,
    PermissionDeniedError,
    RelocationError,
    SourceVanishedError,
)
from ..core.types import MoveKind, MoveOutcome, MoveState
from ..shared.file_utils import (
    CHUNK_SIZE,
    compute_checksum,
    first_available_path,
    format_bytes,
    publish_path,
)

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".autofile-tmp"


class MoveEngine:
    """Relocate files without overwriting, losing, or half-writing data."""

    def __init__(self, verify_checksum: bool = True, max_conflict_attempts: int = 10000):
        """
        Initialize move engine.

        Args:
            verify_checksum: Compare SHA-256 of source and copy on cross-device
                moves (size is always compared)
            max_conflict_attempts: Number of candidate names to try
        """
        self.verify_checksum = verify_checksum
        self.max_conflict_attempts = max_conflict_attempts

    @classmethod
    def from_settings(cls, settings: Settings) -> "MoveEngine":
        return cls(
            verify_checksum=settings.move.verify_checksum,
            max_conflict_attempts=settings.move.max_conflict_attempts,
        )

    def plan(self, source: Path, destination_dir: Path) -> Path:
        """
        Preview the path ``source`` would be moved to, without touching disk.

        Raises:
            ConflictResolutionExhaustedError: If no candidate name is free
        """
        source = Path(source)
        destination_dir = Path(destination_dir)

        if _same_directory(source.parent, destination_dir):
            return source

        path, _ = first_available_path(
            destination_dir, source.name, self.max_conflict_attempts
        )
        return path

    def relocate(self, source: Path, destination_dir: Path) -> MoveOutcome:
        """
        Move a file into ``destination_dir`` under a collision-free name.

        Args:
            source: File to move
            destination_dir: Directory to move it into (created if absent)

        Returns:
            Move outcome with final path and move kind

        Raises:
            SourceVanishedError: If the source no longer exists
            DestinationUncreatableError: If the directory cannot be created
            PermissionDeniedError: If access is refused
            ConflictResolutionExhaustedError: If every candidate name is taken
            CrossFilesystemVerifyError: If a cross-device copy does not match
            RelocationError: For any other I/O failure
        """
        source = Path(source)
        destination_dir = Path(destination_dir)
        self._transition(source, MoveState.PENDING)

        if not source.exists():
            raise SourceVanishedError(source)
        if not source.is_file():
            raise RelocationError(f"Not a regular file: {source}")

        if _same_directory(source.parent, destination_dir):
            logger.info(f"Already in place: {source}")
            return MoveOutcome(
                source_path=source, final_path=source, move_kind=MoveKind.ATOMIC
            )

        self._ensure_directory(destination_dir)

        self._transition(source, MoveState.RESOLVING_NAME)
        moved = False
        try:
            try:
                self._transition(source, MoveState.ATOMIC_MOVE)
                target, counter = publish_path(
                    source, destination_dir, source.name, self.max_conflict_attempts
                )
                move_kind = MoveKind.ATOMIC
            except OSError as e:
                if e.errno != errno.EXDEV:
                    raise
                logger.warning(
                    f"Rename across devices not possible, copying "
                    f"{format_bytes(source.stat().st_size)} instead: "
                    f"{source} -> {destination_dir}"
                )
                self._transition(source, MoveState.COPY_VERIFY_DELETE)
                target, counter = self._copy_verify_publish(source, destination_dir)
                move_kind = MoveKind.COPY_FALLBACK
            moved = True
        except FileNotFoundError as e:
            if not source.exists():
                raise SourceVanishedError(source) from e
            raise RelocationError(f"Failed to move {source}: {e}") from e
        except PermissionError as e:
            raise PermissionDeniedError(f"Failed to move {source}: {e}") from e
        except RelocationError:
            raise
        except OSError as e:
            raise RelocationError(f"Failed to move {source}: {e}") from e
        finally:
            if not moved:
                self._transition(source, MoveState.FAILED)

        self._transition(source, MoveState.DONE)
        logger.info(f"Moved {source} -> {target} ({move_kind.value})")

        return MoveOutcome(
            source_path=source,
            final_path=target,
            move_kind=move_kind,
            renamed=counter is not None,
            conflict_suffix=counter,
        )

    def _ensure_directory(self, destination_dir: Path) -> None:
        try:
            destination_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DestinationUncreatableError(
                f"Failed to create destination directory {destination_dir}: {e}"
            ) from e

    def _copy_verify_publish(
        self, source: Path, destination_dir: Path
    ) -> Tuple[Path, Optional[int]]:
        """
        Copy to a hidden temp file in ``destination_dir``, verify it, publish
        it under a free name, then delete the source.

        The final name only appears once the copy is complete and verified.
        """
        expected_size = source.stat().st_size
        expected_checksum: Optional[str] = None
        if self.verify_checksum:
            expected_checksum = compute_checksum(source)
            if expected_checksum is None:
                raise RelocationError(f"Could not read source for checksum: {source}")

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{source.name}.", suffix=TEMP_SUFFIX, dir=destination_dir
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as dst, open(source, "rb") as src:
                shutil.copyfileobj(src, dst, CHUNK_SIZE)
                dst.flush()
                os.fsync(dst.fileno())

            try:
                shutil.copystat(source, tmp_path)
            except OSError as e:
                logger.debug(f"Could not copy metadata to {tmp_path}: {e}")

            self._verify_copy(source, tmp_path, expected_size, expected_checksum)

            target, counter = publish_path(
                tmp_path, destination_dir, source.name, self.max_conflict_attempts
            )
        finally:
            tmp_path.unlink(missing_ok=True)

        try:
            source.unlink()
        except FileNotFoundError:
            # The verified copy is now the only one; keep it
            logger.warning(f"Source disappeared after copy: {source}")
        except OSError:
            # Source is intact, so withdraw the copy rather than duplicate data
            target.unlink(missing_ok=True)
            raise

        return target, counter

    def _verify_copy(
        self,
        source: Path,
        copy: Path,
        expected_size: int,
        expected_checksum: Optional[str],
    ) -> None:
        actual_size = copy.stat().st_size
        if actual_size != expected_size:
            raise CrossFilesystemVerifyError(
                f"Size mismatch copying {source}: expected {expected_size}, "
                f"got {actual_size}"
            )

        if expected_checksum is not None:
            actual_checksum = compute_checksum(copy)
            if actual_checksum != expected_checksum:
                raise CrossFilesystemVerifyError(
                    f"Checksum mismatch copying {source}: expected "
                    f"{expected_checksum}, got {actual_checksum}"
                )

    @staticmethod
    def _transition(source: Path, state: MoveState) -> None:
        logger.debug(f"{source.name}: {state.value}")


def _same_directory(first: Path, second: Path) -> bool:
    try:
        return first.resolve() == second.resolve()
    except OSError:
        return False
