"""
Organization module for routing files to their category destinations.
"""

from .categorizer import Categorizer
from .matcher import HashingEmbedder, SubfolderMatcher
from .mover import MoveEngine
from .organizer import (
    HealthMonitor,
    JsonLinesSink,
    LoggingSink,
    Organizer,
    OrganizerService,
)

__all__ = [
    "Categorizer",
    "HashingEmbedder",
    "SubfolderMatcher",
    "MoveEngine",
    "Organizer",
    "OrganizerService",
    "HealthMonitor",
    "LoggingSink",
    "JsonLinesSink",
]
