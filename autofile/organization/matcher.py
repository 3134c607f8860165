"""
Semantic matching of files to existing subfolders.

Given a category root such as ``~/Documents`` that already contains
``Invoices/`` and ``Travel/``, a file named ``invoice_march.pdf`` belongs
in ``Invoices/`` rather than in the root. Names are embedded as vectors
and compared by cosine similarity.
"""

import hashlib
import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from ..core.config import Settings

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.5


class Embedder(Protocol):
    """Turns texts into row vectors."""

    def embed(self, texts: Sequence[str]) -> np.ndarray: ...


class HashingEmbedder:
    """
    Character n-gram embedder.

    Lower-cased alphabetic runs are padded with spaces, split into
    n-grams, and hashed into a fixed number of buckets. Rows are
    L2-normalized so a dot product is the cosine similarity.
    """

    def __init__(self, dimensions: int = 512, ngram: int = 3):
        self.dimensions = dimensions
        self.ngram = ngram

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        vectors = np.zeros((len(texts), self.dimensions), dtype=np.float32)

        for row, text in enumerate(texts):
            for gram in self._ngrams(text):
                digest = hashlib.md5(gram.encode("utf-8")).digest()
                vectors[row, int.from_bytes(digest[:4], "little") % self.dimensions] += 1.0

        norms = np.linalg.norm(vectors, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        return vectors / norms

    def _ngrams(self, text: str) -> Iterable[str]:
        for word in normalize_name(text).split():
            padded = f" {word} "
            if len(padded) <= self.ngram:
                yield padded
                continue
            for i in range(len(padded) - self.ngram + 1):
                yield padded[i : i + self.ngram]


def normalize_name(text: str) -> str:
    """Lower-case and keep alphabetic runs only (``IMG_2024-Trip`` → ``img trip``)."""
    return re.sub(r"[^a-z]+", " ", text.lower()).strip()


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    magnitude = float(np.linalg.norm(a) * np.linalg.norm(b))
    if magnitude == 0.0:
        return 0.0
    return float(np.dot(a, b) / magnitude)


class SubfolderMatcher:
    """Pick the existing subfolder whose name best matches a file."""

    def __init__(
        self,
        embedder: Optional[Embedder] = None,
        threshold: float = SIMILARITY_THRESHOLD,
        excluded_folders: Iterable[str] = (),
        reserved_paths: Iterable[Path] = (),
    ):
        """
        Initialize matcher.

        Args:
            embedder: Embedding backend (defaults to HashingEmbedder)
            threshold: Minimum cosine similarity for a match (0.0 to 1.0)
            excluded_folders: Folder names never matched (case-insensitive)
            reserved_paths: Directories never matched, e.g. other category roots
        """
        self.embedder = embedder or HashingEmbedder()
        self.threshold = threshold
        self.excluded_folders = {name.lower() for name in excluded_folders}
        self.reserved_paths = {Path(path).expanduser() for path in reserved_paths}

    @classmethod
    def from_settings(cls, settings: Settings) -> "SubfolderMatcher":
        return cls(
            threshold=settings.matcher.threshold,
            excluded_folders=settings.matcher.excluded_folders,
            reserved_paths=settings.categories.as_mapping().values(),
        )

    def find_matching_subfolder(self, file_path: Path, destination_dir: Path) -> Path:
        """
        Find the best-matching subfolder of ``destination_dir`` for a file.

        Returns:
            The matched subfolder, or ``destination_dir`` if none is similar enough
        """
        file_path = Path(file_path)
        destination_dir = Path(destination_dir)

        file_stem = file_path.stem
        if not normalize_name(file_stem):
            return destination_dir

        folders = self._candidate_folders(destination_dir)
        if not folders:
            return destination_dir

        vectors = self.embedder.embed([file_stem] + [folder.name for folder in folders])
        file_vector = vectors[0]

        best: Optional[Tuple[Path, float]] = None
        for folder, folder_vector in zip(folders, vectors[1:]):
            similarity = cosine_similarity(file_vector, folder_vector)
            logger.debug(
                f"  '{file_stem}' <-> '{folder.name}': similarity = {similarity:.3f}"
            )
            if similarity >= self.threshold and (best is None or similarity > best[1]):
                best = (folder, similarity)

        if best is None:
            logger.debug(f"No subfolder match for '{file_stem}' in {destination_dir}")
            return destination_dir

        logger.info(
            f"Matched '{file_stem}' to folder '{best[0].name}' "
            f"(similarity: {best[1]:.3f})"
        )
        return best[0]

    def _candidate_folders(self, destination_dir: Path) -> List[Path]:
        try:
            entries = sorted(destination_dir.iterdir())
        except OSError:
            return []

        folders = []
        for entry in entries:
            if entry.name.startswith(".") or entry.name.lower() in self.excluded_folders:
                continue
            if entry in self.reserved_paths or not entry.is_dir():
                continue
            folders.append(entry)
        return folders
