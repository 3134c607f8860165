"""
Version information for autofile.

The release number is read from the installed distribution's metadata, so
pyproject.toml is the only place it is written down. Running from a source
checkout appends the commit the checkout is on.
"""

import subprocess
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Optional

DISTRIBUTION = "autofile"
SOURCE_ROOT = Path(__file__).resolve().parent.parent
UNKNOWN_VERSION = "0+unknown"


def installed_version(distribution: str = DISTRIBUTION) -> str:
    """Return the installed version, or ``UNKNOWN_VERSION`` when not installed."""
    try:
        return version(distribution)
    except PackageNotFoundError:
        return UNKNOWN_VERSION


__version__ = installed_version()


def get_git_hash(source_root: Path = SOURCE_ROOT) -> Optional[str]:
    """Get the commit of a source checkout.

    Args:
        source_root: Directory holding the ``autofile`` package

    Returns:
        Short git hash (7 chars), or None outside a git checkout.
    """
    if not (source_root / ".git").exists():
        return None

    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short=7", "HEAD"],
            cwd=source_root,
            capture_output=True,
            text=True,
            check=True,
            timeout=2,
        )
    except (
        subprocess.CalledProcessError,
        subprocess.TimeoutExpired,
        FileNotFoundError,
    ):
        return None
    return result.stdout.strip() or None


def get_version_string() -> str:
    """Get formatted version string with git hash if available.

    Returns:
        Version string like "0.3.0" or "0.3.0 (git:abc1234)"
    """
    git_hash = get_git_hash()
    if git_hash:
        return f"{__version__} (git:{git_hash})"
    return __version__
