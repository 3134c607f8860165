"""
Tests for the static signature, extension, and category tables.
"""

import pytest

from autofile.core.errors import ConfigurationError
from autofile.core.types import Category, TypeLabel
from autofile.detection import (
    EXTENSION_TYPES,
    LABEL_CATEGORIES,
    PREFIX_LENGTH,
    SIGNATURES,
    FileSignature,
    validate_tables,
)


class TestFileSignature:
    """Test individual signature matching."""

    def test_required_length(self):
        """Test that required length covers the furthest rule."""
        sig = FileSignature(TypeLabel.WEBP, ((0, b"RIFF"), (8, b"WEBP")), "image/webp")
        assert sig.required_length == 12

    def test_short_prefix_never_matches(self):
        """Test that a prefix shorter than the rules does not match."""
        sig = FileSignature(TypeLabel.WEBP, ((0, b"RIFF"), (8, b"WEBP")), "image/webp")
        assert not sig.matches_prefix(b"RIFF\x00\x00")
        assert sig.matches_prefix(b"RIFF\x00\x00\x00\x00WEBP")

    def test_members_without_markers(self):
        """Test that a signature without markers accepts any members."""
        sig = FileSignature(TypeLabel.ZIP, ((0, b"PK\x03\x04"),), "application/zip")
        assert sig.matches_members(["anything"], b"")

    def test_members_with_markers(self):
        """Test member-name markers."""
        sig = FileSignature(
            TypeLabel.DOCX,
            ((0, b"PK\x03\x04"),),
            "application/docx",
            ("[Content_Types].xml", "word/document.xml"),
        )
        assert sig.matches_members(["[Content_Types].xml", "word/document.xml"], b"")
        assert not sig.matches_members(["word/document.xml"], b"")
        assert not sig.matches_members(["[Content_Types].xml", "word/notes.txt"], b"")
        assert sig.matches_members(None, b"PK\x03\x04[Content_Types].xml..word/document.xml")
        assert not sig.matches_members(None, b"PK\x03\x04....word/document.xml")


class TestTables:
    """Test table completeness and ordering."""

    def test_every_label_has_a_category(self):
        """Test that the category table is complete."""
        validate_tables()
        assert set(LABEL_CATEGORIES) == set(TypeLabel)

    def test_incomplete_table_rejected(self):
        """Test that a missing label is a configuration error."""
        table = dict(LABEL_CATEGORIES)
        del table[TypeLabel.PDF]

        with pytest.raises(ConfigurationError, match="pdf"):
            validate_tables(table)

    def test_unknown_maps_to_other(self):
        """Test the default category for unknown types."""
        assert LABEL_CATEGORIES[TypeLabel.UNKNOWN] == Category.OTHER

    def test_office_formats_precede_zip(self):
        """Test that ZIP-based documents are checked before plain ZIP."""
        labels = [sig.label for sig in SIGNATURES]
        first_zip = labels.index(TypeLabel.ZIP)

        for label in (TypeLabel.DOCX, TypeLabel.XLSX, TypeLabel.PPTX, TypeLabel.ODT, TypeLabel.EPUB):
            assert labels.index(label) < first_zip

    def test_heic_precedes_generic_mp4(self):
        """Test that ISO-BMFF brands are checked before the generic ftyp rule."""
        labels = [sig.label for sig in SIGNATURES]
        assert labels.index(TypeLabel.HEIC) < labels.index(TypeLabel.MP4)

    def test_prefix_covers_every_rule(self):
        """Test that the read prefix is long enough for every signature."""
        assert all(sig.required_length <= PREFIX_LENGTH for sig in SIGNATURES)

    def test_extension_table_is_lowercase(self):
        """Test that extension keys are lower-case without dots."""
        for ext in EXTENSION_TYPES:
            assert ext == ext.lower()
            assert not ext.startswith(".")

    @pytest.mark.parametrize(
        "ext, category",
        [
            ("pdf", Category.DOCUMENTS),
            ("txt", Category.DOCUMENTS),
            ("heic", Category.IMAGES),
            ("svg", Category.IMAGES),
            ("mkv", Category.VIDEOS),
            ("flac", Category.AUDIO),
            ("7z", Category.ARCHIVES),
            ("rs", Category.CODE),
            ("sh", Category.CODE),
        ],
    )
    def test_extension_categories(self, ext, category):
        """Test that common extensions land in the expected category."""
        assert LABEL_CATEGORIES[EXTENSION_TYPES[ext]] == category
