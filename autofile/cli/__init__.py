"""
Command-line interface for autofile.
"""

from .main import main

__all__ = ["main"]
