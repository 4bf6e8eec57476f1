"""Configuration module for toolpin."""

from toolpin.config.parser import (
    ToolConfig,
    ToolpinConfig,
    load_config,
    parse_config_data,
)

__all__ = [
    "ToolConfig",
    "ToolpinConfig",
    "load_config",
    "parse_config_data",
]
