"""Configuration module for imgpress."""

from imgpress.config.settings import (
    ConcurrencyConfig,
    ImgpressSettings,
    OutputConfig,
    ProbeConfig,
    find_config_file,
    get_settings,
    reload_settings,
)

__all__ = [
    "ImgpressSettings",
    "OutputConfig",
    "ConcurrencyConfig",
    "ProbeConfig",
    "find_config_file",
    "get_settings",
    "reload_settings",
]
