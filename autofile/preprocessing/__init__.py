"""
Preprocessing stages applied to files before they are classified.

Stages are looked up by name in a static registry and assembled into a
pipeline once at startup.
"""

from typing import Callable, Dict

from ..core.config import Settings
from ..core.errors import ConfigurationError
from .base import PipelineResult, Preprocessor, PreprocessorPipeline
from .filename_sanitizer import FilenameSanitizer
from .heic_converter import HeicConverter

STAGE_FACTORIES: Dict[str, Callable[[Settings], Preprocessor]] = {
    FilenameSanitizer.name: lambda settings: FilenameSanitizer(),
    HeicConverter.name: lambda settings: HeicConverter.from_settings(
        settings.preprocessing.heic
    ),
}


def build_pipeline(settings: Settings) -> PreprocessorPipeline:
    """
    Build the preprocessing pipeline from settings.

    Raises:
        ConfigurationError: If a stage name is not registered
    """
    unknown = [name for name in settings.preprocessing.stages if name not in STAGE_FACTORIES]
    if unknown:
        raise ConfigurationError(
            f"Unknown preprocessing stage(s): {', '.join(unknown)}. "
            f"Available: {', '.join(sorted(STAGE_FACTORIES))}"
        )

    stages = []
    for name in settings.preprocessing.stages:
        if name == HeicConverter.name and not settings.preprocessing.heic.enabled:
            continue
        stages.append(STAGE_FACTORIES[name](settings))

    return PreprocessorPipeline(stages, retries=settings.preprocessing.stage_retries)


__all__ = [
    "Preprocessor",
    "PreprocessorPipeline",
    "PipelineResult",
    "FilenameSanitizer",
    "HeicConverter",
    "STAGE_FACTORIES",
    "build_pipeline",
]
