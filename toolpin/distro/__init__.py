"""
Distribution provisioning for toolpin.

Naming conventions per toolchain kind, archive parsing, and the
fetch/cache/install pipeline.
"""

from toolpin.distro.kinds import (
    ToolchainKind,
    DistroNaming,
    NodeNaming,
    YarnNaming,
    naming_for,
)
from toolpin.distro.archive import Archive, ArchiveError
from toolpin.distro.fetcher import (
    Distro,
    DistroSource,
    DistributionFetcher,
    Fetched,
    FetchStatus,
    ProgressInfo,
)

__all__ = [
    "ToolchainKind",
    "DistroNaming",
    "NodeNaming",
    "YarnNaming",
    "naming_for",
    "Archive",
    "ArchiveError",
    "Distro",
    "DistroSource",
    "DistributionFetcher",
    "Fetched",
    "FetchStatus",
    "ProgressInfo",
]
