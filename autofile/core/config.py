"""Application settings.

Values come from constructor arguments, ``AUTOFILE_``-prefixed environment
variables (``__`` separates nested sections), and a TOML file, in that
order of priority.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from .errors import ConfigurationError
from .types import Category

logger = logging.getLogger(__name__)

DEFAULT_STAGES: List[str] = ["sanitize_filename", "heic_to_png"]

DEFAULT_IGNORE_SUFFIXES: List[str] = [
    ".part",
    ".partial",
    ".crdownload",
    ".download",
    ".tmp",
    ".swp",
]


def _home(*parts: str) -> Path:
    return Path.home().joinpath(*parts)


class CategoryRoots(BaseModel):
    """Destination root directory for each category."""

    documents: Path = Field(default_factory=lambda: _home("Documents"))
    images: Path = Field(default_factory=lambda: _home("Pictures"))
    videos: Path = Field(default_factory=lambda: _home("Videos"))
    audio: Path = Field(default_factory=lambda: _home("Music"))
    archives: Path = Field(default_factory=lambda: _home("Documents", "Archives"))
    code: Path = Field(default_factory=lambda: _home("Projects"))
    other: Path = Field(default_factory=lambda: _home("Documents", "Other"))

    @field_validator("*", mode="after")
    @classmethod
    def _expand_user(cls, value: Path) -> Path:
        return value.expanduser()

    def as_mapping(self) -> Dict[Category, Path]:
        """Map every category to its root."""
        return {
            Category.DOCUMENTS: self.documents,
            Category.IMAGES: self.images,
            Category.VIDEOS: self.videos,
            Category.AUDIO: self.audio,
            Category.ARCHIVES: self.archives,
            Category.CODE: self.code,
            Category.OTHER: self.other,
        }


class HeicSettings(BaseModel):
    """Options for the HEIC/HEIF to PNG stage."""

    enabled: bool = True
    max_size_mb: float = Field(default=200, gt=0)
    timeout_seconds: int = Field(default=60, gt=0)


class PreprocessingSettings(BaseModel):
    """Ordered preprocessing stages and their options."""

    stages: List[str] = Field(default_factory=lambda: list(DEFAULT_STAGES))
    stage_retries: int = Field(
        default=0,
        ge=0,
        description="Extra attempts for a failed stage before falling through",
    )
    heic: HeicSettings = Field(default_factory=HeicSettings)


class MatcherSettings(BaseModel):
    """Options for matching files to existing subfolders."""

    enabled: bool = False
    threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    excluded_folders: List[str] = Field(default_factory=list)


class MoveSettings(BaseModel):
    """Options for relocation."""

    verify_checksum: bool = True
    max_conflict_attempts: int = Field(default=10000, ge=1)


class WatchSettings(BaseModel):
    """Options for the directory watcher and worker pool."""

    debounce_seconds: float = Field(default=2.0, ge=0.0)
    workers: int = Field(default=4, ge=1)
    skip_hidden: bool = True
    ignore_suffixes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORE_SUFFIXES)
    )


class Settings(BaseSettings):
    """Application settings."""

    categories: CategoryRoots = Field(default_factory=CategoryRoots)
    preprocessing: PreprocessingSettings = Field(default_factory=PreprocessingSettings)
    matcher: MatcherSettings = Field(default_factory=MatcherSettings)
    move: MoveSettings = Field(default_factory=MoveSettings)
    watch: WatchSettings = Field(default_factory=WatchSettings)

    extension_categories: Dict[str, Category] = Field(
        default_factory=dict,
        description="Extension to category overrides used when no signature matched",
    )
    move_unknown: bool = Field(
        default=True,
        description="Move files of unknown type to the Other root instead of skipping",
    )
    health_failure_threshold: int = Field(default=5, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="AUTOFILE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @field_validator("extension_categories", mode="after")
    @classmethod
    def _normalize_extensions(cls, value: Dict[str, Category]) -> Dict[str, Category]:
        return {ext.lower().lstrip("."): category for ext, category in value.items()}

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, env_settings, TomlConfigSettingsSource(settings_cls))


def default_config_path() -> Path:
    """Get the default config file path (``~/.config/autofile/config.toml``)."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else Path.home() / ".config"
    return base / "autofile" / "config.toml"


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """
    Load settings from a TOML file, the environment, and defaults.

    Args:
        config_path: Explicit TOML file, or None to use the default location

    Returns:
        Settings instance

    Raises:
        FileNotFoundError: If an explicit config file does not exist
        ConfigurationError: If the file is malformed or holds invalid values
    """
    if config_path is not None:
        path = Path(config_path).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = default_config_path()
        if not path.is_file():
            logger.debug(f"No config file at {path}, using defaults")
            try:
                return Settings()
            except ValueError as e:
                raise ConfigurationError(f"Invalid configuration: {e}") from e

    class FileSettings(Settings):
        model_config = SettingsConfigDict(toml_file=path)

    try:
        settings = FileSettings()
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e

    logger.info(f"Loaded config from {path}")
    return settings
