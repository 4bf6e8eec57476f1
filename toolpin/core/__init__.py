"""
Core functionality for toolpin.

This package contains the foundational modules that other components depend on.
"""

from .directory import HomeLayout, DirectoryError, get_home_dir

from .locking import LockManager

from .platform import PlatformInfo, detect_platform, clear_platform_cache

from .version import Version, VersionSpec, SpecMode, parse_version

from .exceptions import (
    ToolpinError,
    ConfigError,
    UnsupportedPlatformError,
    InvalidVersionError,
    ResolutionUnsatisfiable,
    FetchError,
    DownloadFailed,
    ChecksumMismatch,
    UnpackFailed,
    InstallRenameFailed,
    CacheCorrupt,
    CatalogError,
    CatalogLockTimeout,
    ManifestError,
    NotInProject,
    PluginError,
    PluginSpawnFailed,
    PluginProtocolViolation,
)

__all__ = [
    # Directory
    "HomeLayout",
    "DirectoryError",
    "get_home_dir",
    # Locking
    "LockManager",
    # Platform
    "PlatformInfo",
    "detect_platform",
    "clear_platform_cache",
    # Versions
    "Version",
    "VersionSpec",
    "SpecMode",
    "parse_version",
    # Exceptions
    "ToolpinError",
    "ConfigError",
    "UnsupportedPlatformError",
    "InvalidVersionError",
    "ResolutionUnsatisfiable",
    "FetchError",
    "DownloadFailed",
    "ChecksumMismatch",
    "UnpackFailed",
    "InstallRenameFailed",
    "CacheCorrupt",
    "CatalogError",
    "CatalogLockTimeout",
    "ManifestError",
    "NotInProject",
    "PluginError",
    "PluginSpawnFailed",
    "PluginProtocolViolation",
]
