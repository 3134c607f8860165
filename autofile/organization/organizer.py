"""
Per-file orchestration.

``Organizer.handle`` runs one arriving file through preprocessing,
detection, categorization, and relocation, and reports exactly one
``OutcomeRecord`` for it. Per-file failures are caught here and turned
into outcomes; they never propagate to the caller.
"""

import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Set

from ..core.config import Settings
from ..core.errors import AutofileError, SourceVanishedError
from ..core.types import Category, ErrorKind, OutcomeRecord, OutcomeStatus
from ..detection import TypeDetector
from ..preprocessing import PreprocessorPipeline, build_pipeline
from .categorizer import Categorizer
from .matcher import SubfolderMatcher
from .mover import MoveEngine

logger = logging.getLogger(__name__)

OutcomeSink = Callable[[OutcomeRecord], None]


class LoggingSink:
    """Log one line per outcome."""

    def __call__(self, record: OutcomeRecord) -> None:
        prefix = "[dry run] " if record.dry_run else ""

        if record.status == OutcomeStatus.SUCCESS:
            logger.info(
                f"{prefix}{record.source_path.name} -> {record.final_path} "
                f"({record.category.value if record.category else 'Other'}, "
                f"{record.move_kind.value if record.move_kind else 'planned'})"
            )
        elif record.status == OutcomeStatus.SKIPPED:
            logger.info(f"{prefix}Skipped {record.source_path}: {record.error or 'not moved'}")
        else:
            kind = record.error_kind.value if record.error_kind else "error"
            logger.error(f"{prefix}Failed {record.source_path} [{kind}]: {record.error}")


class JsonLinesSink:
    """Append each outcome as one JSON line to a file."""

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def __call__(self, record: OutcomeRecord) -> None:
        line = record.model_dump_json()
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")


class HealthMonitor:
    """
    Track consecutive destination failures.

    When every file fails because a destination cannot be created or
    written, the service is flagged degraded until a file succeeds again.
    """

    DESTINATION_KINDS = {ErrorKind.DESTINATION_UNCREATABLE, ErrorKind.PERMISSION_DENIED}

    def __init__(self, threshold: int = 5):
        self.threshold = threshold
        self._consecutive = 0
        self._degraded = False
        self._lock = threading.Lock()

    @property
    def is_degraded(self) -> bool:
        return self._degraded

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive

    def observe(self, record: OutcomeRecord) -> None:
        if record.status == OutcomeStatus.SUCCESS:
            self.record_success()
        elif record.error_kind in self.DESTINATION_KINDS:
            self.record_failure(record.error)

    def record_failure(self, detail: Optional[str] = None) -> None:
        with self._lock:
            self._consecutive += 1
            if self._consecutive >= self.threshold and not self._degraded:
                self._degraded = True
                logger.error(
                    f"Destination unavailable for {self._consecutive} consecutive files, "
                    f"last error: {detail}"
                )

    def record_success(self) -> None:
        with self._lock:
            if self._degraded:
                logger.info("Destinations reachable again")
            self._consecutive = 0
            self._degraded = False


class Organizer:
    """Organize one file at a time: preprocess, detect, categorize, move."""

    def __init__(
        self,
        detector: TypeDetector,
        categorizer: Categorizer,
        mover: MoveEngine,
        pipeline: Optional[PreprocessorPipeline] = None,
        matcher: Optional[SubfolderMatcher] = None,
        sinks: Optional[Sequence[OutcomeSink]] = None,
        health: Optional[HealthMonitor] = None,
        move_unknown: bool = True,
        dry_run: bool = False,
    ):
        """
        Initialize organizer.

        Args:
            detector: Type detector
            categorizer: Category and destination resolver
            mover: Move engine
            pipeline: Preprocessing pipeline (none if omitted)
            matcher: Optional subfolder matcher
            sinks: Receivers of outcome records (defaults to LoggingSink)
            health: Health monitor for destination failures
            move_unknown: Move files resolved to Other instead of skipping them
            dry_run: Plan destinations without modifying any file
        """
        self.detector = detector
        self.categorizer = categorizer
        self.mover = mover
        self.pipeline = pipeline or PreprocessorPipeline()
        self.matcher = matcher
        self.sinks = list(sinks) if sinks is not None else [LoggingSink()]
        self.health = health or HealthMonitor()
        self.move_unknown = move_unknown
        self.dry_run = dry_run

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        sinks: Optional[Sequence[OutcomeSink]] = None,
        dry_run: bool = False,
    ) -> "Organizer":
        """
        Build an organizer and all of its collaborators from settings.

        Raises:
            ConfigurationError: If the category table or stage list is invalid
        """
        return cls(
            detector=TypeDetector(),
            categorizer=Categorizer.from_settings(settings),
            mover=MoveEngine.from_settings(settings),
            pipeline=build_pipeline(settings),
            matcher=SubfolderMatcher.from_settings(settings) if settings.matcher.enabled else None,
            sinks=sinks,
            health=HealthMonitor(settings.health_failure_threshold),
            move_unknown=settings.move_unknown,
            dry_run=dry_run,
        )

    def handle(
        self, path: Path, on_intermediate: Optional[Callable[[Path], None]] = None
    ) -> OutcomeRecord:
        """
        Organize a single file.

        Args:
            path: File that arrived
            on_intermediate: Called with each file a preprocessing stage creates

        Returns:
            Outcome record (also delivered to every sink)
        """
        path = Path(path)
        record = OutcomeRecord(source_path=path, dry_run=self.dry_run)

        try:
            self._organize(path, record, on_intermediate)
        except SourceVanishedError as e:
            record.status = OutcomeStatus.SKIPPED
            record.error_kind = e.kind
            record.error = str(e)
        except FileNotFoundError as e:
            record.status = OutcomeStatus.SKIPPED
            record.error_kind = ErrorKind.SOURCE_VANISHED
            record.error = f"File no longer exists: {e.filename or path}"
        except AutofileError as e:
            record.status = OutcomeStatus.ERROR
            record.error_kind = e.kind
            record.error = str(e)
        except OSError as e:
            record.status = OutcomeStatus.ERROR
            record.error_kind = ErrorKind.IO_ERROR
            record.error = str(e)
        except Exception as e:
            logger.exception(f"Unexpected error organizing {path}")
            record.status = OutcomeStatus.ERROR
            record.error_kind = ErrorKind.UNEXPECTED
            record.error = f"{type(e).__name__}: {e}"

        self.health.observe(record)
        self._emit(record)
        return record

    def _organize(
        self,
        path: Path,
        record: OutcomeRecord,
        on_intermediate: Optional[Callable[[Path], None]],
    ) -> None:
        if not path.exists():
            raise SourceVanishedError(path)
        if not path.is_file():
            record.status = OutcomeStatus.SKIPPED
            record.error = "Not a regular file"
            return

        current = path
        if not self.dry_run:
            result = self.pipeline.run_with_report(path, on_output=on_intermediate)
            record.stages_applied = result.applied
            record.stage_failures = result.failures
            current = result.final_path
            if not current.exists():
                raise SourceVanishedError(current)

        detected = self.detector.detect(current)
        category = self.categorizer.categorize(detected)
        record.type_label = detected.label
        record.detection_provenance = detected.provenance
        record.category = category

        if category == Category.OTHER and not self.move_unknown:
            record.status = OutcomeStatus.SKIPPED
            record.final_path = current
            record.error = f"Unsupported type ({detected.label.value}), left in place"
            return

        destination = self.categorizer.destination_for(category)
        if self.matcher is not None:
            destination = self.matcher.find_matching_subfolder(current, destination)

        if self.dry_run:
            record.final_path = self.mover.plan(current, destination)
            return

        outcome = self.mover.relocate(current, destination)
        record.final_path = outcome.final_path
        record.move_kind = outcome.move_kind
        record.conflict_suffix = outcome.conflict_suffix

    def _emit(self, record: OutcomeRecord) -> None:
        for sink in self.sinks:
            try:
                sink(record)
            except Exception as e:
                logger.error(f"Outcome sink {sink!r} failed for {record.source_path}: {e}")


class OrganizerService:
    """
    Run ``Organizer.handle`` on a worker pool.

    A path is never processed twice at once; a path submitted again while
    it is running is queued once more after the running job ends, if it
    still exists then. Files created by preprocessing are tracked so that
    their own watch events, which arrive after the file has already been
    moved on, are dropped.
    """

    MAX_REMEMBERED = 1024

    def __init__(self, organizer: Organizer, max_workers: int = 4):
        self.organizer = organizer
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="autofile"
        )
        self._lock = threading.Lock()
        self._in_flight: Set[Path] = set()
        self._requeue: Set[Path] = set()
        self._produced: "OrderedDict[Path, None]" = OrderedDict()
        self._closed = False

    def __enter__(self) -> "OrganizerService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    @property
    def in_flight(self) -> Set[Path]:
        with self._lock:
            return set(self._in_flight)

    def submit(self, path: Path) -> Optional["Future[OutcomeRecord]"]:
        """
        Queue a file for processing.

        Returns:
            Future for the outcome, or None if the path was dropped
        """
        key = Path(path).absolute()

        with self._lock:
            if self._closed:
                logger.debug(f"Service stopped, dropping {key}")
                return None
            if key in self._in_flight:
                logger.debug(f"Already processing {key}, will check it again when done")
                self._requeue.add(key)
                return None
            if key in self._produced:
                del self._produced[key]
                if not key.exists():
                    logger.debug(f"Ignoring event for intermediate file {key}")
                    return None
            self._in_flight.add(key)
            return self._executor.submit(self._run, key)

    def process_many(self, paths: Iterable[Path]) -> List[OutcomeRecord]:
        """Process files concurrently and wait for every outcome."""
        futures = [future for future in map(self.submit, paths) if future is not None]
        return [future.result() for future in as_completed(futures)]

    def shutdown(self, wait: bool = True) -> None:
        """Let running files finish and drop queued ones."""
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def _run(self, path: Path) -> OutcomeRecord:
        produced: List[Path] = []

        def register(intermediate: Path) -> None:
            key = Path(intermediate).absolute()
            with self._lock:
                self._in_flight.add(key)
            produced.append(key)

        try:
            return self.organizer.handle(path, on_intermediate=register)
        finally:
            with self._lock:
                self._in_flight.discard(path)
                for key in produced:
                    self._in_flight.discard(key)
                    self._produced[key] = None
                while len(self._produced) > self.MAX_REMEMBERED:
                    self._produced.popitem(last=False)
                retry = [key for key in (path, *produced) if key in self._requeue]
                self._requeue.difference_update(retry)

            for key in retry:
                if key.exists():
                    logger.debug(f"{key} changed while processing, queueing it again")
                    self.submit(key)
