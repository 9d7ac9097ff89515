"""Configuration settings using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource

from imgpress.config.constants import (
    DEFAULT_ARCHIVE_COMPRESSION_LEVEL,
    DEFAULT_ARCHIVE_NAME,
    DEFAULT_CONCURRENCY,
    DEFAULT_CONFIG_FILE,
    DEFAULT_LOG_DIR,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_PROBE_QUALITY,
    DEFAULT_QUALITY,
)
from imgpress.exceptions import ConfigurationError


class OutputConfig(BaseModel):
    """Output configuration."""

    format: Literal["webp", "jpeg", "png", "avif"] = DEFAULT_OUTPUT_FORMAT
    quality: float = Field(default=DEFAULT_QUALITY, ge=0.0, le=1.0)
    directory: str = DEFAULT_OUTPUT_DIR
    on_conflict: Literal["skip", "overwrite", "rename"] = "rename"
    archive_name: str = DEFAULT_ARCHIVE_NAME
    archive_compression_level: int = Field(default=DEFAULT_ARCHIVE_COMPRESSION_LEVEL, ge=0, le=9)


class ConcurrencyConfig(BaseModel):
    """Concurrency configuration."""

    limit: int = Field(default=DEFAULT_CONCURRENCY, ge=1)


class ProbeConfig(BaseModel):
    """Capability probe configuration."""

    quality: float = Field(default=DEFAULT_PROBE_QUALITY, ge=0.0, le=1.0)


class ImgpressSettings(BaseSettings):
    """Main configuration class for imgpress."""

    model_config = SettingsConfigDict(
        env_prefix="IMGPRESS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings sources to include YAML file."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=DEFAULT_CONFIG_FILE),
            file_secret_settings,
        )

    # Sub-configurations
    output: OutputConfig = Field(default_factory=OutputConfig)
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    probe: ProbeConfig = Field(default_factory=ProbeConfig)

    # Global settings
    # Task log file level; --verbose forces DEBUG
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_dir: str = DEFAULT_LOG_DIR

    def get_output_dir(self, base_path: Path | None = None) -> Path:
        """Get the output directory path."""
        if base_path:
            return base_path / self.output.directory
        return Path(self.output.directory)


def find_config_file() -> Path | None:
    """Return the YAML file the settings are loaded from, if present."""
    path = Path.cwd() / DEFAULT_CONFIG_FILE
    return path if path.is_file() else None


@lru_cache
def get_settings() -> ImgpressSettings:
    """Get cached settings instance.

    Raises:
        ConfigurationError: If the config file or environment holds invalid values
    """
    try:
        return ImgpressSettings()
    except ValidationError as e:
        source = find_config_file() or "environment"
        raise ConfigurationError(f"Invalid configuration ({source}): {e}") from e


def reload_settings() -> ImgpressSettings:
    """Force reload settings (clear cache)."""
    get_settings.cache_clear()
    return get_settings()
