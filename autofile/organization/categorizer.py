"""
Category resolution.

Maps a detected type to one of the fixed categories and each category to
its destination root. Resolution is a pure table lookup.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Union

from ..core.config import Settings
from ..core.errors import ConfigurationError, DestinationUncreatableError
from ..core.types import Category, DetectedType, DetectionProvenance, TypeLabel
from ..detection.signatures import LABEL_CATEGORIES, validate_tables

logger = logging.getLogger(__name__)


class Categorizer:
    """Resolve detected types to categories and destination roots."""

    def __init__(
        self,
        roots: Dict[Category, Path],
        label_categories: Optional[Dict[TypeLabel, Category]] = None,
        extension_overrides: Optional[Dict[str, Category]] = None,
    ):
        """
        Initialize categorizer.

        Args:
            roots: Destination root per category
            label_categories: Type label to category table
            extension_overrides: Extension to category table, consulted only
                when detection did not match a signature

        Raises:
            ConfigurationError: If a type label has no category
        """
        self.label_categories = (
            LABEL_CATEGORIES if label_categories is None else dict(label_categories)
        )
        validate_tables(self.label_categories)

        self.roots = {category: Path(root) for category, root in roots.items()}
        if Category.OTHER not in self.roots:
            raise ConfigurationError("A destination root for Other is required")

        self.extension_overrides = {
            ext.lower().lstrip("."): category
            for ext, category in (extension_overrides or {}).items()
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "Categorizer":
        return cls(
            roots=settings.categories.as_mapping(),
            extension_overrides=settings.extension_categories,
        )

    def categorize(self, detected: DetectedType) -> Category:
        """
        Resolve the category for a detected type.

        Always returns a category; unknown types resolve to ``Category.OTHER``.
        """
        if detected.provenance != DetectionProvenance.SIGNATURE:
            override = self.extension_overrides.get(detected.extension.lower())
            if override is not None:
                return override

        return self.category_for_label(detected.label)

    def category_for_label(self, label: Union[TypeLabel, str]) -> Category:
        """Look up a type label, case-insensitively when given as a string."""
        if not isinstance(label, TypeLabel):
            try:
                label = TypeLabel(str(label).lower())
            except ValueError:
                return Category.OTHER

        return self.label_categories.get(label, Category.OTHER)

    def destination_for(self, category: Category) -> Path:
        """Get the destination root for a category."""
        if category in self.roots:
            return self.roots[category]
        return self.roots[Category.OTHER]

    def ensure_destinations_exist(self) -> None:
        """
        Create every destination root that does not exist yet.

        Raises:
            DestinationUncreatableError: If a root cannot be created
        """
        for category, root in self.roots.items():
            if root.is_dir():
                continue

            logger.info(f"Creating destination directory for {category.value}: {root}")
            try:
                root.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise DestinationUncreatableError(
                    f"Failed to create directory {root}: {e}"
                ) from e
