"""
Detection module for identifying file types by content.
"""

from .detector import TypeDetector
from .signatures import (
    EXTENSION_TYPES,
    LABEL_CATEGORIES,
    PREFIX_LENGTH,
    SIGNATURES,
    FileSignature,
    validate_tables,
)

__all__ = [
    "TypeDetector",
    "FileSignature",
    "SIGNATURES",
    "EXTENSION_TYPES",
    "LABEL_CATEGORIES",
    "PREFIX_LENGTH",
    "validate_tables",
]
