"""
File utilities for autofile.

Checksums, file-name helpers, collision-free publishing of files, and
logging setup shared by the preprocessing stages and the move engine.
"""

import errno
import hashlib
import logging
import os
from pathlib import Path
from typing import Iterator, Optional, Tuple

from ..core.errors import ConflictResolutionExhaustedError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

# os.link errors meaning the filesystem has no hard links
LINK_UNSUPPORTED = {errno.EPERM, errno.ENOTSUP, errno.EOPNOTSUPP, errno.ENOSYS, errno.EMLINK}


# Checksum operations
def compute_checksum(file_path: Path, algorithm: str = "sha256") -> Optional[str]:
    """
    Compute cryptographic checksum of a file.

    Args:
        file_path: Path to the file
        algorithm: Hash algorithm (sha256, md5, etc.)

    Returns:
        Hexadecimal checksum string, or None on error
    """
    try:
        hash_obj = hashlib.new(algorithm)

        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                hash_obj.update(chunk)

        return hash_obj.hexdigest()
    except OSError as e:
        logger.error(f"Error computing checksum for {file_path}: {e}")
        return None


def format_bytes(size_bytes: int) -> str:
    """
    Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., "2.5 GB")
    """
    if size_bytes == 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    unit_index = 0
    size = float(size_bytes)

    while size >= 1024.0 and unit_index < len(units) - 1:
        size /= 1024.0
        unit_index += 1

    return f"{size:.2f} {units[unit_index]}"


# File names
def safe_filename(name: str) -> str:
    """
    Convert a string to a safe filename.

    Args:
        name: Input string

    Returns:
        Safe filename string
    """
    unsafe_chars = '<>:"/\\|?*'
    for char in unsafe_chars:
        name = name.replace(char, "_")

    name = "".join(char if char.isprintable() else "_" for char in name)

    # Remove trailing spaces and dots; leading dots mark hidden files
    name = name.strip(" ").rstrip(".")

    if len(name) > 255:
        stem, dot, suffix = name.rpartition(".")
        if dot and len(suffix) < 16:
            name = stem[: 255 - len(suffix) - 1] + "." + suffix
        else:
            name = name[:255]

    return name or "unnamed"


def is_hidden(path: Path) -> bool:
    """Check if a file or folder is hidden."""
    return path.name.startswith(".")


def conflict_name(filename: str, counter: int) -> str:
    """
    Build the conflict-resolved name for ``filename``.

    ``report.pdf`` with counter 2 becomes ``report (2).pdf``; a name
    without an extension gets the suffix appended.
    """
    path = Path(filename)
    return f"{path.stem} ({counter}){path.suffix}"


def candidate_names(filename: str, max_attempts: int) -> Iterator[Tuple[str, Optional[int]]]:
    """Yield ``(name, counter)`` pairs: the original name first, then numbered ones."""
    yield filename, None
    for counter in range(1, max_attempts):
        yield conflict_name(filename, counter), counter


def first_available_path(
    directory: Path, filename: str, max_attempts: int = 10000
) -> Tuple[Path, Optional[int]]:
    """
    Find the first candidate name that does not exist, without claiming it.

    Only suitable for previews; use ``reserve_path`` before writing.
    """
    for name, counter in candidate_names(filename, max_attempts):
        candidate = directory / name
        if not os.path.lexists(candidate):
            return candidate, counter

    raise ConflictResolutionExhaustedError(
        f"Could not resolve file name conflict for {directory / filename} "
        f"after {max_attempts} attempts"
    )


def reserve_path(
    directory: Path, filename: str, max_attempts: int = 10000
) -> Tuple[Path, Optional[int]]:
    """
    Claim a collision-free path in ``directory`` by exclusive creation.

    Each candidate is created with ``O_CREAT | O_EXCL`` so concurrent
    callers can never claim the same name. The claimed path is left as an
    empty placeholder that the caller must replace or release.

    Args:
        directory: Directory to place the file in
        filename: Preferred file name
        max_attempts: Number of candidates to try

    Returns:
        Tuple of (claimed path, conflict counter or None)

    Raises:
        ConflictResolutionExhaustedError: If every candidate is taken
        OSError: For failures other than the name being taken
    """
    for name, counter in candidate_names(filename, max_attempts):
        candidate = directory / name
        try:
            fd = os.open(candidate, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError:
            continue
        os.close(fd)
        if counter is not None:
            logger.warning(f"File conflict detected, using new name: {name}")
        return candidate, counter

    raise ConflictResolutionExhaustedError(
        f"Could not resolve file name conflict for {directory / filename} "
        f"after {max_attempts} attempts"
    )


def release_path(path: Path) -> None:
    """Remove a placeholder created by ``reserve_path`` if it is still empty."""
    try:
        if path.stat().st_size == 0:
            path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not release placeholder {path}: {e}")


def link_unique(
    source: Path, directory: Path, filename: str, max_attempts: int = 10000
) -> Tuple[Path, Optional[int]]:
    """
    Hard-link ``source`` into ``directory`` under the first free candidate name.

    ``os.link`` refuses an existing name, so claiming the name and making
    the complete file visible under it happen in one step.

    Returns:
        Tuple of (linked path, conflict counter or None)

    Raises:
        ConflictResolutionExhaustedError: If every candidate is taken
        OSError: For failures other than the name being taken, including
            ``EXDEV`` when ``directory`` is on another filesystem
    """
    for name, counter in candidate_names(filename, max_attempts):
        candidate = directory / name
        try:
            os.link(source, candidate)
        except FileExistsError:
            continue
        if counter is not None:
            logger.warning(f"File conflict detected, using new name: {name}")
        return candidate, counter

    raise ConflictResolutionExhaustedError(
        f"Could not resolve file name conflict for {directory / filename} "
        f"after {max_attempts} attempts"
    )


def publish_path(
    file: Path, directory: Path, filename: str, max_attempts: int = 10000
) -> Tuple[Path, Optional[int]]:
    """
    Move ``file`` to a collision-free name in ``directory`` on the same filesystem.

    The file is linked under its new name and then unlinked from the old
    one, so the new name never shows partial content and nothing is
    overwritten. If the old name cannot be removed, the new link is
    withdrawn and the error raised. Where hard links are unsupported, a
    name is reserved with ``reserve_path`` and replaced by a rename.

    Returns:
        Tuple of (new path, conflict counter or None)

    Raises:
        ConflictResolutionExhaustedError: If every candidate is taken
        OSError: If the move fails; ``file`` keeps its old name
    """
    try:
        target, counter = link_unique(file, directory, filename, max_attempts)
    except OSError as e:
        if e.errno not in LINK_UNSUPPORTED:
            raise
        logger.debug(f"Hard links unavailable in {directory} ({e}), renaming instead")
        return _rename_unique(file, directory, filename, max_attempts)

    try:
        file.unlink()
    except FileNotFoundError:
        logger.warning(f"{file} disappeared after it was linked to {target}")
    except OSError:
        target.unlink(missing_ok=True)
        raise

    return target, counter


def _rename_unique(
    file: Path, directory: Path, filename: str, max_attempts: int
) -> Tuple[Path, Optional[int]]:
    target, counter = reserve_path(directory, filename, max_attempts)
    try:
        os.replace(file, target)
    except OSError:
        release_path(target)
        raise
    return target, counter


# Logging setup
def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, set logging level to DEBUG
        quiet: If True, set logging level to WARNING
    """
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
