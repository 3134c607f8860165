"""
Shared utilities for autofile.

Common functionality used by the preprocessing stages, the move engine,
and the command line.
"""

from .file_utils import (
    # File operations
    compute_checksum,
    format_bytes,
    # Names
    safe_filename,
    is_hidden,
    conflict_name,
    first_available_path,
    reserve_path,
    release_path,
    link_unique,
    publish_path,
    # Logging
    setup_logging,
)

__all__ = [
    "compute_checksum",
    "format_bytes",
    "safe_filename",
    "is_hidden",
    "conflict_name",
    "first_available_path",
    "reserve_path",
    "release_path",
    "link_unique",
    "publish_path",
    "setup_logging",
]
