"""
Stage that converts HEIC/HEIF photos to PNG.

Decoding goes through Pillow with the pillow-heif plugin. When the plugin
cannot be registered, an external converter (``sips`` on macOS, ImageMagick
elsewhere) is used instead. The PNG is written beside the original under a
hidden temporary name, published under a collision-free ``<stem>.png``,
and only then is the original removed.
"""

import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

from PIL import Image, ImageOps
from pillow_heif import register_heif_opener

from ..core.config import HeicSettings
from ..core.errors import PreprocessorStageError
from ..shared.file_utils import publish_path
from .base import Preprocessor

logger = logging.getLogger(__name__)

HEIC_EXTENSIONS = {".heic", ".heif"}

# Tried in order when Pillow cannot decode HEIF
EXTERNAL_CONVERTERS = ("sips", "magick", "convert")


def _converter_command(tool: str, source: Path, output: Path) -> List[str]:
    if tool == "sips":
        return ["sips", "-s", "format", "png", str(source), "--out", str(output)]
    return [tool, str(source), f"png:{output}"]


class HeicConverter(Preprocessor):
    """Convert HEIC/HEIF images to PNG and remove the original."""

    name = "heic_to_png"

    def __init__(
        self,
        max_size_mb: float = 200,
        timeout_seconds: int = 60,
    ):
        """
        Initialize converter.

        Args:
            max_size_mb: Files larger than this are left alone
            timeout_seconds: Time limit for an external converter
        """
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)
        self.timeout_seconds = timeout_seconds
        self._use_pillow = False
        self._external_tool: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: HeicSettings) -> "HeicConverter":
        return cls(
            max_size_mb=settings.max_size_mb,
            timeout_seconds=settings.timeout_seconds,
        )

    def is_available(self) -> bool:
        try:
            register_heif_opener()
            self._use_pillow = True
            return True
        except Exception as e:
            logger.debug(f"Could not register HEIF support with Pillow: {e}")

        for tool in EXTERNAL_CONVERTERS:
            if shutil.which(tool):
                self._external_tool = tool
                logger.info(f"Using external HEIC converter: {tool}")
                return True

        return False

    def should_process(self, path: Path) -> bool:
        if path.suffix.lower() not in HEIC_EXTENSIONS:
            return False

        try:
            size = path.stat().st_size
        except OSError:
            return False

        if size > self.max_size_bytes:
            logger.info(
                f"Skipping HEIC conversion of {path.name}: "
                f"{size} bytes exceeds limit of {self.max_size_bytes}"
            )
            return False

        return True

    def process(self, path: Path) -> Path:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.stem}.", suffix=".png.autofile-tmp", dir=path.parent
        )
        os.close(fd)
        tmp_path = Path(tmp_name)

        try:
            self._convert(path, tmp_path)

            if tmp_path.stat().st_size == 0:
                raise PreprocessorStageError(self.name, path, ValueError("empty output"))

            target, _ = publish_path(tmp_path, path.parent, f"{path.stem}.png")
        except PreprocessorStageError:
            raise
        except Exception as e:
            raise PreprocessorStageError(self.name, path, e) from e
        finally:
            tmp_path.unlink(missing_ok=True)

        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Converted {path.name} but could not remove the original: {e}")

        logger.info(f"Converted {path.name} -> {target.name}")
        return target

    def _convert(self, source: Path, output: Path) -> None:
        if self._use_pillow:
            with Image.open(source) as img:
                img = ImageOps.exif_transpose(img)
                img.save(output, format="PNG")
            return

        if self._external_tool is None:
            raise PreprocessorStageError(
                self.name, source, RuntimeError("no HEIC decoder available")
            )

        try:
            result = subprocess.run(
                _converter_command(self._external_tool, source, output),
                capture_output=True,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired as e:
            raise PreprocessorStageError(
                self.name,
                source,
                TimeoutError(f"{self._external_tool} timed out after {self.timeout_seconds}s"),
            ) from e

        if result.returncode != 0:
            stderr = result.stderr.decode(errors="replace").strip() if result.stderr else ""
            raise PreprocessorStageError(
                self.name,
                source,
                RuntimeError(f"{self._external_tool} exited {result.returncode}: {stderr}"),
            )
