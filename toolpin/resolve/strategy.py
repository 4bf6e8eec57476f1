"""
Resolution strategy interface.

A strategy turns a version range that no installed version satisfies into
a concrete version, by asking an authoritative source: the public
distribution index, or a user-configured plugin.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from toolpin.core.version import Version, VersionSpec
from toolpin.distro.kinds import ToolchainKind


@dataclass(frozen=True)
class Resolution:
    """
    A resolved version and, when the source supplied them, where to get it.

    Attributes:
        version: Concrete version
        url: Archive URL overriding the default naming convention
        sha256: Expected archive digest
        source: What produced the answer ('exact', 'installed', 'index', 'plugin')
    """

    version: Version
    url: Optional[str] = None
    sha256: Optional[str] = None
    source: str = "exact"


class ResolutionStrategy(ABC):
    """
    Abstract base class for resolution strategies.

    Exactly one strategy is active per toolchain kind per invocation.
    """

    name = "strategy"

    @abstractmethod
    def resolve(self, kind: ToolchainKind, spec: VersionSpec) -> Resolution:
        """
        Find the highest version of ``kind`` satisfying ``spec``.

        Raises:
            ResolutionUnsatisfiable: If the source has no matching version
        """
        pass
