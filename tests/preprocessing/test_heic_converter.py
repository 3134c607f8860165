"""
Tests for the HEIC to PNG stage.
"""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
from PIL import Image

from autofile.core.errors import PreprocessorStageError
from autofile.preprocessing import HeicConverter


def write_png(source: Path, output: Path) -> None:
    Image.new("RGB", (4, 4), color=(0, 255, 0)).save(output, format="PNG")


@pytest.fixture
def converter():
    stage = HeicConverter()
    assert stage.is_available()
    return stage


@pytest.fixture
def heic(inbox) -> Path:
    path = inbox / "photo.HEIC"
    path.write_bytes(b"\x00\x00\x00\x18ftypheic" + b"\x00" * 64)
    return path


class TestPredicate:
    """Test which files the stage accepts."""

    def test_accepts_heic_and_heif(self, converter, inbox):
        """Test case-insensitive HEIC/HEIF suffixes."""
        for name in ("a.heic", "b.HEIC", "c.heif", "d.Heif"):
            path = inbox / name
            path.write_bytes(b"x")
            assert converter.should_process(path)

    def test_declines_other_files(self, converter, inbox):
        """Test that other images are left alone."""
        path = inbox / "photo.png"
        path.write_bytes(b"x")
        assert not converter.should_process(path)

    def test_declines_large_files(self, heic):
        """Test the size limit."""
        converter = HeicConverter(max_size_mb=0.00001)
        assert not converter.should_process(heic)

    def test_declines_missing_file(self, converter, inbox):
        """Test that a vanished file is declined, not an error."""
        assert not converter.should_process(inbox / "gone.heic")


class TestConversion:
    """Test converting and replacing the original."""

    def test_converts_and_removes_original(self, converter, heic):
        """Test that photo.HEIC becomes photo.png."""
        with patch.object(converter, "_convert", side_effect=write_png):
            result = converter.process(heic)

        assert result == heic.with_name("photo.png")
        assert not heic.exists()
        with Image.open(result) as img:
            assert img.format == "PNG"
        assert [p.name for p in heic.parent.iterdir()] == ["photo.png"]

    def test_existing_png_not_overwritten(self, converter, heic):
        """Test that an existing photo.png forces a numbered name."""
        existing = heic.with_name("photo.png")
        existing.write_text("keep me")

        with patch.object(converter, "_convert", side_effect=write_png):
            result = converter.process(heic)

        assert result == heic.with_name("photo (1).png")
        assert existing.read_text() == "keep me"

    def test_failure_keeps_original(self, converter, heic):
        """Test that a decode error leaves only the original behind."""
        with patch.object(converter, "_convert", side_effect=OSError("cannot identify image")):
            with pytest.raises(PreprocessorStageError):
                converter.process(heic)

        assert [p.name for p in heic.parent.iterdir()] == ["photo.HEIC"]

    def test_empty_output_is_failure(self, converter, heic):
        """Test that a converter producing nothing fails."""
        with patch.object(converter, "_convert", return_value=None):
            with pytest.raises(PreprocessorStageError):
                converter.process(heic)

        assert [p.name for p in heic.parent.iterdir()] == ["photo.HEIC"]

    def test_not_really_heic(self, converter, heic):
        """Test that undecodable content fails without losing the file."""
        with pytest.raises(PreprocessorStageError):
            converter.process(heic)

        assert heic.exists()

    def test_real_heic(self, converter, inbox):
        """Test a real HEIC encoded with pillow-heif."""
        path = inbox / "real.heic"
        try:
            Image.new("RGB", (16, 16), color=(10, 20, 30)).save(path, format="HEIF")
        except (KeyError, OSError, RuntimeError, ValueError) as e:
            pytest.skip(f"HEIF encoding unavailable: {e}")

        result = converter.process(path)

        assert result.name == "real.png"
        assert not path.exists()
        with Image.open(result) as img:
            assert img.size == (16, 16)


class TestExternalConverter:
    """Test the command-line fallback."""

    @pytest.fixture
    def external(self):
        stage = HeicConverter(timeout_seconds=5)
        with patch(
            "autofile.preprocessing.heic_converter.register_heif_opener",
            side_effect=RuntimeError("libheif missing"),
        ):
            with patch(
                "autofile.preprocessing.heic_converter.shutil.which",
                side_effect=lambda tool: "/usr/bin/magick" if tool == "magick" else None,
            ):
                assert stage.is_available()
        return stage

    def test_picks_available_tool(self, external):
        """Test that the first installed tool is used."""
        assert external._external_tool == "magick"

    def test_nothing_available(self):
        """Test that no decoder means the stage is unavailable."""
        stage = HeicConverter()
        with patch(
            "autofile.preprocessing.heic_converter.register_heif_opener",
            side_effect=RuntimeError("libheif missing"),
        ):
            with patch("autofile.preprocessing.heic_converter.shutil.which", return_value=None):
                assert not stage.is_available()

    def test_runs_tool(self, external, heic):
        """Test a successful external conversion."""

        def fake_run(command, capture_output, timeout):
            assert command[0] == "magick"
            assert timeout == 5
            write_png(Path(command[1]), Path(command[2].removeprefix("png:")))
            return subprocess.CompletedProcess(command, 0, b"", b"")

        with patch("autofile.preprocessing.heic_converter.subprocess.run", side_effect=fake_run):
            result = external.process(heic)

        assert result.name == "photo.png"
        assert not heic.exists()

    def test_tool_error(self, external, heic):
        """Test that a failing tool raises a stage error."""
        failed = subprocess.CompletedProcess(["magick"], 1, b"", b"no decode delegate")

        with patch("autofile.preprocessing.heic_converter.subprocess.run", return_value=failed):
            with pytest.raises(PreprocessorStageError, match="no decode delegate"):
                external.process(heic)

        assert heic.exists()

    def test_tool_timeout(self, external, heic):
        """Test that a stuck tool is bounded by its timeout."""
        with patch(
            "autofile.preprocessing.heic_converter.subprocess.run",
            side_effect=subprocess.TimeoutExpired("magick", 5),
        ):
            with pytest.raises(PreprocessorStageError, match="timed out"):
                external.process(heic)

        assert [p.name for p in heic.parent.iterdir()] == ["photo.HEIC"]
