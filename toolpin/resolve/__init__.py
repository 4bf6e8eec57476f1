"""
Version resolution for toolpin.

Turns version requirements into concrete versions, using installed
versions first and then the public index or a configured plugin.
"""

from toolpin.resolve.strategy import Resolution, ResolutionStrategy
from toolpin.resolve.index import PublicIndexStrategy
from toolpin.resolve.plugin import (
    PluginStrategy,
    ResolutionRequest,
    ResolutionResponse,
    parse_response,
    resolve_via_plugin,
)
from toolpin.resolve.resolver import VersionResolver, strategy_for

__all__ = [
    "Resolution",
    "ResolutionStrategy",
    "PublicIndexStrategy",
    "PluginStrategy",
    "ResolutionRequest",
    "ResolutionResponse",
    "parse_response",
    "resolve_via_plugin",
    "VersionResolver",
    "strategy_for",
]
