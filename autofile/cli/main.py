"""
Command line entry point.

Watches a directory (``~/Downloads`` by default) and organizes every file
that arrives, or organizes the files already there with ``--once``.
"""

import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..version import get_version_string
from ..core.config import Settings, load_settings
from ..core.errors import ConfigurationError, DestinationUncreatableError, WatchError
from ..core.types import OutcomeRecord, OutcomeStatus
from ..organization import JsonLinesSink, LoggingSink, Organizer, OrganizerService
from ..shared import is_hidden, setup_logging
from ..watcher import DirectoryWatcher

console = Console()


def default_watch_directory() -> Path:
    return Path.home() / "Downloads"


@click.command()
@click.argument(
    "watch_directory",
    required=False,
    type=click.Path(path_type=Path),
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="TOML config file (default: ~/.config/autofile/config.toml)",
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=None,
    help="Number of files processed in parallel (default: from config)",
)
@click.option(
    "--once",
    is_flag=True,
    default=False,
    help="Organize the files currently in the directory, then exit",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Show where files would go without changing anything",
)
@click.option(
    "--outcome-log",
    type=click.Path(path_type=Path),
    default=None,
    help="Append one JSON line per processed file to this file",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose output")
@click.option("-q", "--quiet", is_flag=True, default=False, help="Only show warnings and errors")
@click.version_option(version=get_version_string(), prog_name="autofile")
def main(
    watch_directory: Optional[Path],
    config_path: Optional[Path],
    workers: Optional[int],
    once: bool,
    dry_run: bool,
    outcome_log: Optional[Path],
    verbose: bool,
    quiet: bool,
) -> None:
    """
    Sort files arriving in WATCH_DIRECTORY into category folders.

    Files are identified by their content, not their name, then moved to
    the destination for their category (Documents, Images, Videos, Audio,
    Archives, Code, Other). HEIC photos are converted to PNG first.

    \b
    Examples:
        # Watch ~/Downloads until interrupted
        autofile

        # Preview where the files in a directory would go
        autofile ~/Desktop --once --dry-run

        # Organize once with a custom config
        autofile ~/Downloads --once --config ~/autofile.toml
    """
    setup_logging(verbose=verbose, quiet=quiet)

    directory = (watch_directory or default_watch_directory()).expanduser()
    if not directory.is_dir():
        console.print(f"[red]✗ Watch directory does not exist: {directory}[/red]")
        sys.exit(1)

    try:
        settings = load_settings(config_path)
    except (FileNotFoundError, ConfigurationError) as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        sys.exit(1)

    sinks = [LoggingSink()]
    if outcome_log is not None:
        sinks.append(JsonLinesSink(outcome_log))

    try:
        organizer = Organizer.from_settings(settings, sinks=sinks, dry_run=dry_run)
        if not dry_run:
            organizer.categorizer.ensure_destinations_exist()
    except (ConfigurationError, DestinationUncreatableError) as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        sys.exit(1)

    worker_count = workers or settings.watch.workers
    if not quiet:
        _print_configuration(directory, organizer, worker_count, once, dry_run)

    service = OrganizerService(organizer, max_workers=worker_count)

    if once:
        try:
            records = service.process_many(_existing_files(directory, settings))
        finally:
            service.shutdown()
        _display_results(records, dry_run)
        return

    watcher = DirectoryWatcher.from_settings(directory, service.submit, settings)
    stop_event = threading.Event()
    previous_handlers = _install_signal_handlers(stop_event)

    try:
        try:
            watcher.start()
        except WatchError as e:
            console.print(f"[red]✗ {escape(str(e))}[/red]")
            sys.exit(1)

        console.print("[green]Watching for new files. Press Ctrl+C to stop.[/green]")
        _wait_for_shutdown(stop_event)

        console.print("\n[yellow]Stopping, letting in-progress files finish...[/yellow]")
        watcher.stop()
    finally:
        service.shutdown(wait=True)
        _restore_signal_handlers(previous_handlers)

    console.print("[green]✓ Stopped[/green]")


def _existing_files(directory: Path, settings: Settings) -> List[Path]:
    ignore_suffixes = {suffix.lower() for suffix in settings.watch.ignore_suffixes}

    files = []
    for path in sorted(directory.iterdir()):
        if not path.is_file():
            continue
        if settings.watch.skip_hidden and is_hidden(path):
            continue
        if path.suffix.lower() in ignore_suffixes:
            continue
        files.append(path)
    return files


def _install_signal_handlers(stop_event: threading.Event) -> dict:
    def _request_stop(signum, frame) -> None:
        stop_event.set()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.getsignal(signum)
        signal.signal(signum, _request_stop)
    return previous


def _restore_signal_handlers(previous: dict) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def _wait_for_shutdown(stop_event: threading.Event) -> None:
    while not stop_event.wait(1.0):
        pass


def _print_configuration(
    directory: Path, organizer: Organizer, workers: int, once: bool, dry_run: bool
) -> None:
    """Display the effective configuration."""
    console.print("\n[cyan]autofile Configuration:[/cyan]")
    console.print(f"  Watch directory: {directory}")
    console.print(f"  Mode: {'organize once' if once else 'watch'}")
    console.print(f"  Workers: {workers}")
    stages = ", ".join(organizer.pipeline.stage_names) or "none"
    console.print(f"  Preprocessing: {stages}")
    console.print(f"  Subfolder matching: {'YES' if organizer.matcher else 'NO'}")
    console.print(f"  Dry run: {'YES' if dry_run else 'NO'}")

    table = Table(title="Destinations")
    table.add_column("Category", style="cyan")
    table.add_column("Directory")
    for category, root in organizer.categorizer.roots.items():
        table.add_row(category.value, str(root))
    console.print(table)

    if dry_run:
        console.print("\n[yellow]⚠ DRY RUN MODE - No files will be modified[/yellow]")
    console.print()


def _display_results(records: List[OutcomeRecord], dry_run: bool) -> None:
    """Display the outcome of an organize-once run."""
    succeeded = [r for r in records if r.status == OutcomeStatus.SUCCESS]
    skipped = [r for r in records if r.status == OutcomeStatus.SKIPPED]
    failed = [r for r in records if r.status == OutcomeStatus.ERROR]

    console.print("\n[green]✓ Organization complete![/green]\n")

    table = Table(title="Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Total files", str(len(records)))
    table.add_row("Would organize" if dry_run else "Organized", str(len(succeeded)))
    table.add_row("Skipped", str(len(skipped)))
    table.add_row("Failed", str(len(failed)))
    console.print(table)

    if succeeded:
        moves = Table(title="Planned moves" if dry_run else "Moved files")
        moves.add_column("File", style="cyan")
        moves.add_column("Category")
        moves.add_column("Destination")
        for record in sorted(succeeded, key=lambda r: str(r.source_path))[:20]:
            moves.add_row(
                record.source_path.name,
                record.category.value if record.category else "",
                str(record.final_path),
            )
        console.print(moves)
        if len(succeeded) > 20:
            console.print(f"  [dim]... and {len(succeeded) - 20} more[/dim]")

    if dry_run:
        console.print("\n[yellow]This was a DRY RUN - no files were modified[/yellow]")

    if failed:
        console.print("\n[red]Errors:[/red]")
        for record in failed[:10]:
            detail = escape(f"{record.source_path.name}: {record.error}")
            console.print(f"  [red]• {detail}[/red]")
        if len(failed) > 10:
            console.print(f"  [dim]... and {len(failed) - 10} more[/dim]")


if __name__ == "__main__":
    main()
