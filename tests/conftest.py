"""
Pytest configuration and fixtures for autofile tests.
"""

import os
import zipfile
from pathlib import Path
from typing import Dict

import pytest
from PIL import Image

from autofile.core.config import CategoryRoots, Settings
from autofile.core.types import Category


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path_factory, monkeypatch):
    """Keep the user's home, config file, and AUTOFILE_ variables out of tests."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    for name in list(os.environ):
        if name.startswith("AUTOFILE_"):
            monkeypatch.delenv(name)
    return home


@pytest.fixture
def inbox(tmp_path) -> Path:
    """Directory files arrive in."""
    path = tmp_path / "Downloads"
    path.mkdir()
    return path


@pytest.fixture
def roots(tmp_path) -> Dict[Category, Path]:
    """Destination root per category under tmp_path (not created)."""
    base = tmp_path / "dest"
    return {
        Category.DOCUMENTS: base / "Documents",
        Category.IMAGES: base / "Pictures",
        Category.VIDEOS: base / "Videos",
        Category.AUDIO: base / "Music",
        Category.ARCHIVES: base / "Documents" / "Archives",
        Category.CODE: base / "Projects",
        Category.OTHER: base / "Documents" / "Other",
    }


@pytest.fixture
def settings(roots) -> Settings:
    """Settings pointing every category at tmp_path."""
    return Settings(
        categories=CategoryRoots(
            documents=roots[Category.DOCUMENTS],
            images=roots[Category.IMAGES],
            videos=roots[Category.VIDEOS],
            audio=roots[Category.AUDIO],
            archives=roots[Category.ARCHIVES],
            code=roots[Category.CODE],
            other=roots[Category.OTHER],
        )
    )


class SampleFiles:
    """Builders for files with real content signatures."""

    @staticmethod
    def pdf(path: Path) -> Path:
        path.write_bytes(
            b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n%%EOF\n"
        )
        return path

    @staticmethod
    def png(path: Path, size=(8, 8), color=(255, 0, 0)) -> Path:
        Image.new("RGB", size, color=color).save(path, format="PNG")
        return path

    @staticmethod
    def jpeg(path: Path, size=(8, 8), color=(0, 0, 255)) -> Path:
        Image.new("RGB", size, color=color).save(path, format="JPEG")
        return path

    @staticmethod
    def zip(path: Path, members: Dict[str, str]) -> Path:
        with zipfile.ZipFile(path, "w") as archive:
            for name, content in members.items():
                archive.writestr(name, content)
        return path

    @classmethod
    def docx(cls, path: Path) -> Path:
        return cls.zip(
            path,
            {
                "[Content_Types].xml": "<Types/>",
                "_rels/.rels": "<Relationships/>",
                "word/document.xml": "<w:document/>",
            },
        )

    @staticmethod
    def odt(path: Path) -> Path:
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr(
                zipfile.ZipInfo("mimetype"),
                "application/vnd.oasis.opendocument.text",
                compress_type=zipfile.ZIP_STORED,
            )
            archive.writestr("content.xml", "<office:document-content/>")
        return path


@pytest.fixture
def samples() -> SampleFiles:
    """File builders (PDF, PNG, JPEG, ZIP, DOCX, ODT)."""
    return SampleFiles()
