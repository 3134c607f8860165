"""
Filesystem watcher for the download directory.

Reports files that appear in a directory (created, written, or moved in)
once they have been quiet for a debounce period, so a file that is still
being downloaded is handed over once rather than on every write.
"""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .core.config import DEFAULT_IGNORE_SUFFIXES, Settings
from .core.errors import WatchError

logger = logging.getLogger(__name__)


class ArrivalHandler(FileSystemEventHandler):
    """Translate watchdog events into debounced arrivals."""

    def __init__(self, watcher: "DirectoryWatcher"):
        super().__init__()
        self.watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.watcher.notify(Path(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.watcher.notify(Path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.watcher.notify(Path(event.dest_path))


class DirectoryWatcher:
    """Watch one directory (not its subdirectories) for arriving files."""

    def __init__(
        self,
        directory: Path,
        callback: Callable[[Path], None],
        debounce_seconds: float = 2.0,
        skip_hidden: bool = True,
        ignore_suffixes: Iterable[str] = DEFAULT_IGNORE_SUFFIXES,
    ):
        """
        Initialize directory watcher.

        Args:
            directory: Directory to watch
            callback: Called with each arrived file path, from the flush thread
            debounce_seconds: Quiet period before a path is reported
            skip_hidden: Ignore dot-files
            ignore_suffixes: Suffixes of files still being written (e.g. ``.part``)
        """
        self.directory = Path(directory).expanduser().absolute()
        self.callback = callback
        self.debounce_seconds = debounce_seconds
        self.skip_hidden = skip_hidden
        self.ignore_suffixes = {suffix.lower() for suffix in ignore_suffixes}

        self._pending: Dict[Path, float] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._observer: Optional[Observer] = None
        self._flush_thread: Optional[threading.Thread] = None

    @classmethod
    def from_settings(
        cls, directory: Path, callback: Callable[[Path], None], settings: Settings
    ) -> "DirectoryWatcher":
        return cls(
            directory,
            callback,
            debounce_seconds=settings.watch.debounce_seconds,
            skip_hidden=settings.watch.skip_hidden,
            ignore_suffixes=settings.watch.ignore_suffixes,
        )

    @property
    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def should_ignore(self, path: Path) -> bool:
        if self.skip_hidden and path.name.startswith("."):
            return True
        return path.suffix.lower() in self.ignore_suffixes

    def notify(self, path: Path) -> None:
        """Record an event for ``path``, restarting its debounce period."""
        if self.should_ignore(path):
            return

        with self._lock:
            if path not in self._pending:
                logger.debug(f"Detected file: {path}")
            self._pending[path] = time.monotonic() + self.debounce_seconds

    def start(self) -> None:
        """
        Start watching.

        Raises:
            WatchError: If the directory does not exist or cannot be watched
        """
        if not self.directory.is_dir():
            raise WatchError(f"Watch directory does not exist: {self.directory}")

        observer = Observer()
        observer.schedule(ArrivalHandler(self), str(self.directory), recursive=False)
        try:
            observer.start()
        except OSError as e:
            raise WatchError(f"Cannot watch {self.directory}: {e}") from e

        self._observer = observer
        self._stop_event.clear()
        self._flush_thread = threading.Thread(
            target=self._flush_loop, name="autofile-debounce", daemon=True
        )
        self._flush_thread.start()
        logger.info(f"Watching {self.directory}")

    def stop(self) -> None:
        """Stop watching; pending paths that have not settled are dropped."""
        self._stop_event.set()

        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None

        if self._flush_thread is not None:
            self._flush_thread.join()
            self._flush_thread = None

        with self._lock:
            self._pending.clear()

        logger.info(f"Stopped watching {self.directory}")

    def flush_due(self, now: Optional[float] = None) -> int:
        """
        Hand every settled path to the callback.

        Returns:
            Number of paths reported
        """
        now = time.monotonic() if now is None else now

        with self._lock:
            due = [path for path, deadline in self._pending.items() if deadline <= now]
            for path in due:
                del self._pending[path]

        for path in due:
            try:
                self.callback(path)
            except Exception as e:
                logger.error(f"Error dispatching {path}: {e}")

        return len(due)

    def _flush_loop(self) -> None:
        interval = min(0.5, max(self.debounce_seconds / 4, 0.05))
        while not self._stop_event.wait(interval):
            self.flush_due()
