"""
Preprocessing pipeline.

A stage either declines a file (its predicate returns False) or
transforms it into a new file at a new path. Stages run in a fixed order,
each one receiving the path the previous stage produced. A stage that
fails leaves the path as it was, so the file is never lost.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from pydantic import BaseModel, Field

from ..core.errors import PreprocessorStageError

logger = logging.getLogger(__name__)


class Preprocessor(ABC):
    """Abstract base class for preprocessing stages."""

    name: str = "preprocessor"

    def is_available(self) -> bool:
        """Check whether the backend this stage relies on can be used."""
        return True

    @abstractmethod
    def should_process(self, path: Path) -> bool:
        """Return True if this stage applies to ``path``."""
        pass

    @abstractmethod
    def process(self, path: Path) -> Path:
        """
        Transform the file at ``path``.

        Returns:
            Path of the transformed file

        Raises:
            PreprocessorStageError: If the transform fails; the input file
                must be left intact
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class PipelineResult(BaseModel):
    """Result of running the pipeline on one file."""

    source_path: Path
    final_path: Path
    applied: List[str] = Field(default_factory=list)
    failures: List[str] = Field(default_factory=list)
    intermediate_paths: List[Path] = Field(default_factory=list)


class PreprocessorPipeline:
    """Run an ordered, fixed list of stages over a file."""

    def __init__(self, stages: Sequence[Preprocessor] = (), retries: int = 0):
        """
        Initialize pipeline.

        Availability of each stage is checked once here; a stage that is
        unavailable declines every file for the lifetime of the pipeline.

        Args:
            stages: Stages in the order they run
            retries: Extra attempts for a stage whose transform fails
        """
        self.stages = tuple(stages)
        self.retries = retries
        self._available = {}

        for stage in self.stages:
            try:
                available = bool(stage.is_available())
            except Exception as e:
                logger.warning(f"Availability check for stage '{stage.name}' failed: {e}")
                available = False

            if not available:
                logger.warning(f"Preprocessing stage '{stage.name}' is unavailable, skipping it")
            self._available[id(stage)] = available

    @property
    def stage_names(self) -> List[str]:
        return [stage.name for stage in self.stages]

    def is_stage_available(self, stage: Preprocessor) -> bool:
        return self._available.get(id(stage), False)

    def run(self, path: Path) -> Path:
        """Run every stage over ``path`` and return the final path."""
        return self.run_with_report(path).final_path

    def run_with_report(
        self, path: Path, on_output: Optional[Callable[[Path], None]] = None
    ) -> PipelineResult:
        """
        Run every stage over ``path`` and record what happened.

        Args:
            path: File to preprocess
            on_output: Called with each new path a stage produces, before the
                next stage runs
        """
        result = PipelineResult(source_path=path, final_path=path)
        current = Path(path)

        for stage in self.stages:
            if not self._accepts(stage, current):
                continue

            transformed = self._apply(stage, current)
            if transformed is None:
                result.failures.append(stage.name)
                continue

            if transformed != current:
                logger.info(f"Stage '{stage.name}': {current.name} -> {transformed.name}")
                result.intermediate_paths.append(transformed)
                if on_output is not None:
                    on_output(transformed)
            result.applied.append(stage.name)
            current = transformed

        result.final_path = current
        return result

    def _accepts(self, stage: Preprocessor, path: Path) -> bool:
        if not self.is_stage_available(stage):
            return False

        try:
            return bool(stage.should_process(path))
        except Exception as e:
            logger.warning(f"Stage '{stage.name}' could not inspect {path}: {e}")
            return False

    def _apply(self, stage: Preprocessor, path: Path) -> Optional[Path]:
        attempts = self.retries + 1

        for attempt in range(1, attempts + 1):
            try:
                transformed = Path(stage.process(path))
                if not transformed.exists():
                    raise PreprocessorStageError(
                        stage.name, path, FileNotFoundError(f"No output at {transformed}")
                    )
                return transformed
            except PreprocessorStageError as e:
                error = e
            except Exception as e:
                error = PreprocessorStageError(stage.name, path, e)

            if attempt < attempts and path.exists():
                logger.warning(f"{error} (attempt {attempt}/{attempts}), retrying")
                continue

            logger.warning(f"{error}; continuing with {path.name}")
            break

        return None
