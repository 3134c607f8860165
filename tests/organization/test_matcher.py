"""
Tests for subfolder matching.
"""

import numpy as np
import pytest

from autofile.organization.matcher import (
    HashingEmbedder,
    SubfolderMatcher,
    cosine_similarity,
    normalize_name,
)


@pytest.fixture
def documents(tmp_path):
    root = tmp_path / "Documents"
    for name in ("Invoices", "Travel", "Recipes", ".git"):
        (root / name).mkdir(parents=True)
    (root / "notes.txt").write_text("not a folder")
    return root


class TestHashingEmbedder:
    """Test the n-gram embedder."""

    def test_rows_are_normalized(self):
        """Test that each row has unit length."""
        vectors = HashingEmbedder().embed(["invoice", "travel plans"])

        assert vectors.shape == (2, 512)
        assert np.allclose(np.linalg.norm(vectors, axis=1), 1.0)

    def test_empty_text_is_zero(self):
        """Test that text without letters embeds to zeros."""
        vectors = HashingEmbedder().embed(["2024_01"])
        assert not vectors.any()

    def test_deterministic(self):
        """Test that embeddings are stable across instances."""
        a = HashingEmbedder().embed(["quarterly report"])
        b = HashingEmbedder().embed(["quarterly report"])
        assert np.array_equal(a, b)

    def test_similar_names_score_higher(self):
        """Test that related names are closer than unrelated ones."""
        file, related, unrelated = HashingEmbedder().embed(
            ["invoice_march", "Invoices", "Recipes"]
        )
        assert cosine_similarity(file, related) > cosine_similarity(file, unrelated)

    def test_normalize_name(self):
        """Test name normalization."""
        assert normalize_name("IMG_2024-Trip") == "img trip"
        assert normalize_name("1234") == ""

    def test_cosine_of_zero_vector(self):
        """Test that a zero vector has zero similarity."""
        assert cosine_similarity(np.zeros(4), np.ones(4)) == 0.0


class TestSubfolderMatcher:
    """Test picking a subfolder for a file."""

    def test_matches_similar_folder(self, documents):
        """Test that an invoice lands in Invoices."""
        matcher = SubfolderMatcher()
        result = matcher.find_matching_subfolder(documents / "invoice_march.pdf", documents)
        assert result == documents / "Invoices"

    def test_no_match_returns_root(self, documents):
        """Test that an unrelated name stays in the root."""
        matcher = SubfolderMatcher()
        assert matcher.find_matching_subfolder(documents / "zzz.pdf", documents) == documents

    def test_threshold(self, documents):
        """Test that a threshold of 1.0 rejects partial matches."""
        matcher = SubfolderMatcher(threshold=1.0)
        result = matcher.find_matching_subfolder(documents / "invoice_march.pdf", documents)
        assert result == documents

    def test_exact_name_matches_at_high_threshold(self, documents):
        """Test that an identical name passes a near-perfect threshold."""
        matcher = SubfolderMatcher(threshold=0.99)
        assert matcher.find_matching_subfolder(documents / "travel.pdf", documents) == (
            documents / "Travel"
        )

    def test_excluded_folders(self, documents):
        """Test that excluded folders are never chosen, case-insensitively."""
        matcher = SubfolderMatcher(excluded_folders=["invoices"])
        result = matcher.find_matching_subfolder(documents / "invoice_march.pdf", documents)
        assert result == documents

    def test_reserved_paths(self, documents):
        """Test that another category's root is never chosen."""
        matcher = SubfolderMatcher(reserved_paths=[documents / "Invoices"])
        result = matcher.find_matching_subfolder(documents / "invoice_march.pdf", documents)
        assert result == documents

    def test_hidden_folders_skipped(self, documents):
        """Test that dot-folders are ignored."""
        matcher = SubfolderMatcher(threshold=0.0)
        result = matcher.find_matching_subfolder(documents / "git.txt", documents)
        assert result != documents / ".git"

    def test_missing_root(self, tmp_path):
        """Test that a missing root is returned unchanged."""
        root = tmp_path / "missing"
        assert SubfolderMatcher().find_matching_subfolder(tmp_path / "a.pdf", root) == root

    def test_empty_stem(self, documents):
        """Test that a name without letters is not matched."""
        matcher = SubfolderMatcher(threshold=0.0)
        assert matcher.find_matching_subfolder(documents / "2024.pdf", documents) == documents

    def test_from_settings(self, settings):
        """Test that category roots become reserved paths."""
        settings.matcher.excluded_folders = ["Archive"]

        matcher = SubfolderMatcher.from_settings(settings)

        assert matcher.threshold == 0.5
        assert "archive" in matcher.excluded_folders
        assert settings.categories.archives in matcher.reserved_paths
