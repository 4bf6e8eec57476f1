"""
Version resolution.

Decides which concrete version satisfies a requirement:

1. An exact requirement is already resolved; no source is consulted.
2. A range is matched against the installed versions first, taking the
   highest match.
3. Otherwise the active strategy for the toolchain kind (public index or
   plugin) picks the version.

Resolving never installs anything.
"""

import logging
from typing import Optional

from toolpin.config.parser import ToolpinConfig
from toolpin.core.version import VersionSpec
from toolpin.distro.kinds import ToolchainKind
from toolpin.resolve.index import PublicIndexStrategy
from toolpin.resolve.plugin import PluginStrategy
from toolpin.resolve.strategy import Resolution, ResolutionStrategy

logger = logging.getLogger(__name__)


def strategy_for(kind: ToolchainKind, config: ToolpinConfig) -> ResolutionStrategy:
    """
    Select the single active strategy for ``kind``.

    A configured plugin replaces the public index entirely.
    """
    tool = config.tool(kind.value)
    if tool.resolve:
        return PluginStrategy(tool.resolve, timeout=tool.timeout)
    node_root = config.tool(ToolchainKind.NODE.value).index
    return PublicIndexStrategy(node_root=node_root)


class VersionResolver:
    """Resolve version requirements against the catalog and a strategy."""

    def __init__(self, catalog, config: Optional[ToolpinConfig] = None):
        self.catalog = catalog
        self.config = config or ToolpinConfig()

    def resolve(
        self,
        spec: VersionSpec,
        kind: ToolchainKind,
        strategy: Optional[ResolutionStrategy] = None,
    ) -> Resolution:
        """
        Resolve ``spec`` for ``kind``.

        Args:
            spec: Version requirement
            kind: Toolchain kind
            strategy: Strategy to use when nothing installed matches
                (default: chosen from configuration)

        Raises:
            ResolutionUnsatisfiable: If no source has a matching version
            PluginSpawnFailed, PluginProtocolViolation: From a plugin strategy
            DownloadFailed: If the public index cannot be fetched
        """
        if spec.is_exact:
            return Resolution(spec.version, source="exact")

        installed = self.catalog.resolve_installed(kind, spec)
        if installed is not None:
            logger.debug(f"'{spec}' satisfied by installed {kind} v{installed}")
            return Resolution(installed, source="installed")

        if strategy is None:
            strategy = strategy_for(kind, self.config)
        logger.debug(f"Resolving {kind} '{spec}' with {strategy.name} strategy")
        return strategy.resolve(kind, spec)
