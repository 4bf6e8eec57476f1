"""
Directory structure management for toolpin.

This module resolves the toolpin home directory and the paths inside it.
Every other module asks this one for locations so the layout is defined in
exactly one place.

Directory Structure:
    Home (~/.toolpin/, %USERPROFILE%\\.toolpin\\, or $TOOLPIN_HOME):
        - cache/<kind>/     : Downloaded distribution archives
        - versions/<kind>/  : Unpacked installations, one directory per version
        - tmp/              : Staging area for unpacking (same filesystem as versions/)
        - lock/             : Cross-process lock files
        - catalog.json      : Installed versions and user defaults
        - config.yaml       : User configuration
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from toolpin.core.exceptions import ToolpinError

HOME_ENV_VAR = "TOOLPIN_HOME"


class DirectoryError(ToolpinError):
    """Raised when the home directory cannot be determined."""

    pass


def get_home_dir() -> Path:
    """
    Get the toolpin home directory.

    Returns:
        Path: ``$TOOLPIN_HOME`` when set, otherwise the platform default.
            - Windows: %USERPROFILE%\\.toolpin
            - Linux/macOS: ~/.toolpin

    Raises:
        DirectoryError: If on Windows and USERPROFILE is unset

    Example:
        >>> get_home_dir()
        PosixPath('/home/user/.toolpin')
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override)

    if os.name == "nt":
        user_profile = os.environ.get("USERPROFILE")
        if not user_profile:
            raise DirectoryError(
                "USERPROFILE environment variable is not set. "
                f"Set {HOME_ENV_VAR} to choose a toolpin home directory."
            )
        return Path(user_profile) / ".toolpin"

    return Path.home() / ".toolpin"


@dataclass(frozen=True)
class HomeLayout:
    """
    Paths inside a toolpin home directory.

    Attributes:
        root: Home directory
    """

    root: Path

    @classmethod
    def default(cls, root: Optional[Path] = None) -> "HomeLayout":
        """Build a layout rooted at ``root`` or at get_home_dir()."""
        return cls(Path(root) if root is not None else get_home_dir())

    @property
    def cache_root(self) -> Path:
        return self.root / "cache"

    @property
    def versions_root(self) -> Path:
        return self.root / "versions"

    @property
    def tmp_dir(self) -> Path:
        return self.root / "tmp"

    @property
    def lock_dir(self) -> Path:
        return self.root / "lock"

    @property
    def catalog_file(self) -> Path:
        return self.root / "catalog.json"

    @property
    def config_file(self) -> Path:
        return self.root / "config.yaml"

    def cache_dir(self, kind: str) -> Path:
        """Directory holding cached archives for one toolchain kind."""
        return self.cache_root / kind

    def versions_dir(self, kind: str) -> Path:
        """Directory holding installed versions of one toolchain kind."""
        return self.versions_root / kind

    def version_dir(self, kind: str, version: str) -> Path:
        """Final install location for ``version`` of ``kind``."""
        return self.versions_dir(kind) / version
