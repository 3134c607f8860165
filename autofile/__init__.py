"""
autofile - content-aware file organizer.

Watches a directory, identifies each arriving file by its content,
runs it through optional preprocessing stages, and moves it into a
category-specific destination without ever losing or overwriting data.
"""

from .version import __version__

__all__ = ["__version__"]
