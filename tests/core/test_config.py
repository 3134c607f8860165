"""
Tests for settings loading.
"""

from pathlib import Path

import pytest

from autofile.core.config import (
    DEFAULT_STAGES,
    CategoryRoots,
    Settings,
    default_config_path,
    load_settings,
)
from autofile.core.errors import ConfigurationError
from autofile.core.types import Category


class TestDefaults:
    """Test default settings values."""

    def test_category_roots_are_home_relative(self, isolated_environment):
        """Test that default roots live under the home directory."""
        roots = CategoryRoots().as_mapping()

        assert roots[Category.DOCUMENTS] == isolated_environment / "Documents"
        assert roots[Category.IMAGES] == isolated_environment / "Pictures"
        assert roots[Category.VIDEOS] == isolated_environment / "Videos"
        assert roots[Category.AUDIO] == isolated_environment / "Music"
        assert roots[Category.ARCHIVES] == isolated_environment / "Documents" / "Archives"
        assert roots[Category.CODE] == isolated_environment / "Projects"
        assert roots[Category.OTHER] == isolated_environment / "Documents" / "Other"

    def test_every_category_has_a_root(self):
        """Test that the mapping covers the whole enumeration."""
        assert set(CategoryRoots().as_mapping()) == set(Category)

    def test_section_defaults(self):
        """Test nested section defaults."""
        settings = Settings()

        assert settings.preprocessing.stages == DEFAULT_STAGES
        assert settings.preprocessing.stage_retries == 0
        assert settings.preprocessing.heic.enabled is True
        assert settings.preprocessing.heic.max_size_mb == 200
        assert settings.matcher.enabled is False
        assert settings.matcher.threshold == 0.5
        assert settings.move.verify_checksum is True
        assert settings.move.max_conflict_attempts == 10000
        assert settings.watch.debounce_seconds == 2.0
        assert settings.watch.workers == 4
        assert ".crdownload" in settings.watch.ignore_suffixes
        assert settings.move_unknown is True
        assert settings.health_failure_threshold == 5

    def test_tilde_is_expanded(self, isolated_environment):
        """Test that ~ in a root is expanded."""
        roots = CategoryRoots(images="~/Photos/Inbox")
        assert roots.images == isolated_environment / "Photos" / "Inbox"

    def test_extension_overrides_normalized(self):
        """Test that extension override keys are lower-cased without dots."""
        settings = Settings(extension_categories={".LOG": "Code"})
        assert settings.extension_categories == {"log": Category.CODE}


class TestEnvironment:
    """Test environment variable overrides."""

    def test_nested_env_override(self, monkeypatch):
        """Test AUTOFILE_SECTION__KEY variables."""
        monkeypatch.setenv("AUTOFILE_WATCH__WORKERS", "8")
        monkeypatch.setenv("AUTOFILE_MOVE_UNKNOWN", "false")

        settings = Settings()

        assert settings.watch.workers == 8
        assert settings.move_unknown is False

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        """Test that environment variables take priority over the TOML file."""
        config = tmp_path / "config.toml"
        config.write_text("[watch]\nworkers = 2\n")
        monkeypatch.setenv("AUTOFILE_WATCH__WORKERS", "6")

        assert load_settings(config).watch.workers == 6


class TestLoadSettings:
    """Test loading settings from TOML files."""

    def test_explicit_file(self, tmp_path):
        """Test loading values from an explicit file."""
        config = tmp_path / "config.toml"
        config.write_text(
            'move_unknown = false\n'
            '[categories]\n'
            f'images = "{tmp_path / "pics"}"\n'
            '[preprocessing]\n'
            'stages = ["heic_to_png"]\n'
            'stage_retries = 2\n'
            '[matcher]\n'
            'enabled = true\n'
            'excluded_folders = ["Archive"]\n'
        )

        settings = load_settings(config)

        assert settings.move_unknown is False
        assert settings.categories.images == tmp_path / "pics"
        assert settings.preprocessing.stages == ["heic_to_png"]
        assert settings.preprocessing.stage_retries == 2
        assert settings.matcher.enabled is True
        assert settings.matcher.excluded_folders == ["Archive"]
        # Unset values keep their defaults
        assert settings.watch.workers == 4

    def test_missing_explicit_file(self, tmp_path):
        """Test that a missing explicit file is an error."""
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nope.toml")

    def test_no_default_file_uses_defaults(self):
        """Test that an absent default file yields defaults."""
        assert not default_config_path().exists()
        assert load_settings().watch.workers == 4

    def test_default_file_location(self, isolated_environment):
        """Test that the default file is read when present."""
        path = default_config_path()
        assert path == isolated_environment / ".config" / "autofile" / "config.toml"

        path.parent.mkdir(parents=True)
        path.write_text("[watch]\ndebounce_seconds = 0.5\n")

        assert load_settings().watch.debounce_seconds == 0.5

    def test_invalid_value(self, tmp_path):
        """Test that an out-of-range value raises ConfigurationError."""
        config = tmp_path / "config.toml"
        config.write_text("[watch]\nworkers = 0\n")

        with pytest.raises(ConfigurationError):
            load_settings(config)

    def test_unknown_category_in_overrides(self, tmp_path):
        """Test that an override naming a nonexistent category is rejected."""
        config = tmp_path / "config.toml"
        config.write_text('[extension_categories]\nlog = "Spreadsheets"\n')

        with pytest.raises(ConfigurationError):
            load_settings(config)

    def test_malformed_toml(self, tmp_path):
        """Test that unparsable TOML raises ConfigurationError."""
        config = tmp_path / "config.toml"
        config.write_text("[watch\nworkers = \n")

        with pytest.raises(ConfigurationError):
            load_settings(config)

    def test_configuration_error_is_value_error(self):
        """Test that ConfigurationError can be caught as ValueError."""
        assert issubclass(ConfigurationError, ValueError)

    def test_path_accepts_str(self, tmp_path):
        """Test that a string path works."""
        config = tmp_path / "config.toml"
        config.write_text("")
        assert isinstance(load_settings(str(config)), Settings)
        assert isinstance(default_config_path(), Path)
