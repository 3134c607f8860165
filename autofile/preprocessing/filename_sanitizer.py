"""
Stage that renames files whose names are unsafe on common filesystems.
"""

import logging
from pathlib import Path

from ..core.errors import PreprocessorStageError
from ..shared.file_utils import publish_path, safe_filename
from .base import Preprocessor

logger = logging.getLogger(__name__)


class FilenameSanitizer(Preprocessor):
    """Replace reserved and non-printable characters in file names."""

    name = "sanitize_filename"

    def should_process(self, path: Path) -> bool:
        return safe_filename(path.name) != path.name

    def process(self, path: Path) -> Path:
        new_name = safe_filename(path.name)

        try:
            target, _ = publish_path(path, path.parent, new_name)
        except Exception as e:
            raise PreprocessorStageError(self.name, path, e) from e

        logger.debug(f"Sanitized file name: {path.name!r} -> {target.name!r}")
        return target
