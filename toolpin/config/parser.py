"""YAML configuration parser for toolpin.

This module loads the user configuration file (``~/.toolpin/config.yaml``),
which selects a resolver plugin and a distribution server per toolchain kind.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import yaml

from toolpin.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

TOOL_KINDS = ("node", "yarn")


@dataclass
class ToolConfig:
    """Settings for one toolchain kind."""

    resolve: Optional[str] = None  # plugin command line
    index: Optional[str] = None  # distribution server root URL
    timeout: Optional[float] = None  # plugin timeout in seconds


@dataclass
class ToolpinConfig:
    """Complete toolpin configuration."""

    tools: Dict[str, ToolConfig] = field(default_factory=dict)
    verify_checksums: bool = False
    source: Optional[Path] = None

    def tool(self, kind: str) -> ToolConfig:
        """Settings for ``kind``; an empty ToolConfig when unconfigured."""
        return self.tools.get(kind, ToolConfig())


def load_config(config_path: Path) -> ToolpinConfig:
    """
    Load the configuration file, tolerating its absence.

    Args:
        config_path: Path to config.yaml

    Returns:
        Parsed configuration (defaults when the file does not exist)

    Raises:
        ConfigError: If the file is unreadable or invalid
    """
    if not config_path.exists():
        logger.debug(f"No configuration file at {config_path}, using defaults")
        return ToolpinConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Could not read {config_path}: {e}") from e

    if data is None:
        return ToolpinConfig(source=config_path)

    config = parse_config_data(data)
    config.source = config_path
    logger.debug(f"Loaded configuration from {config_path}")
    return config


def parse_config_data(data) -> ToolpinConfig:
    """Parse and validate an already-decoded configuration mapping."""
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")

    tools = {}
    for kind in TOOL_KINDS:
        if kind in data:
            tools[kind] = _parse_tool(kind, data[kind])

    verify_checksums = data.get("verify_checksums", False)
    if not isinstance(verify_checksums, bool):
        raise ConfigError("verify_checksums must be true or false")

    for key in data:
        if key not in TOOL_KINDS and key != "verify_checksums":
            logger.debug(f"Ignoring unknown configuration key: {key}")

    return ToolpinConfig(tools=tools, verify_checksums=verify_checksums)


def _parse_tool(kind: str, data) -> ToolConfig:
    """Parse one toolchain kind section."""
    if data is None:
        return ToolConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"'{kind}' section must be a mapping")

    resolve = data.get("resolve")
    if resolve is not None and (not isinstance(resolve, str) or not resolve.strip()):
        raise ConfigError(f"{kind}.resolve must be a non-empty command string")

    index = data.get("index")
    if index is not None:
        if not isinstance(index, str) or not index.startswith(("http://", "https://")):
            raise ConfigError(f"{kind}.index must be an http(s) URL")
        if not index.endswith("/"):
            index += "/"

    timeout = data.get("timeout")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError(f"{kind}.timeout must be a positive number of seconds")
        timeout = float(timeout)

    return ToolConfig(resolve=resolve, index=index, timeout=timeout)
