"""
Toolchain kinds and their distribution naming conventions.

toolpin manages exactly two toolchains: the Node runtime and the Yarn
package manager. Each publishes archives under its own naming scheme; this
module is the single place those schemes are spelled out.
"""

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Optional

from toolpin.core.platform import PlatformInfo, detect_platform


class ToolchainKind(Enum):
    """A managed toolchain."""

    NODE = "node"
    YARN = "yarn"

    @classmethod
    def parse(cls, name: str) -> "ToolchainKind":
        try:
            return cls(name.strip().lower())
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(
                f"Unknown toolchain '{name}' (expected one of: {valid})"
            ) from None

    def __str__(self) -> str:
        return self.value


class DistroNaming(ABC):
    """
    Naming convention for one toolchain kind.

    Subclasses describe where archives live and what they unpack to.
    """

    kind: ToolchainKind
    public_root: str

    @abstractmethod
    def archive_file(self, version: str) -> str:
        """File name of the archive for ``version``."""

    @abstractmethod
    def archive_root_dir(self, version: str) -> str:
        """Name of the single top-level directory inside the archive."""

    @abstractmethod
    def entry_point(self) -> str:
        """Executable, relative to the install root, that every install contains."""

    def is_complete_install(self, install_dir: Path) -> bool:
        """
        Check whether ``install_dir`` holds a fully unpacked distribution.

        An empty, stale or half-deleted directory lacks the entry point.
        """
        return (install_dir / self.entry_point()).is_file()

    def url(self, version: str, root: Optional[str] = None) -> str:
        """
        Download URL following the ``{root}v{version}/{archive}`` convention.

        Args:
            version: Version string
            root: Server root URL (default: the public server)
        """
        root = root or self.public_root
        if not root.endswith("/"):
            root += "/"
        return f"{root}v{version}/{self.archive_file(version)}"

    def checksum_url(self, version: str, root: Optional[str] = None) -> Optional[str]:
        """URL of a published SHA-256 listing, when the project has one."""
        return None


class NodeNaming(DistroNaming):
    """``node-v10.1.0-linux-x64.tar.gz`` unpacking to ``node-v10.1.0-linux-x64/``."""

    kind = ToolchainKind.NODE
    public_root = "https://nodejs.org/dist/"

    def __init__(self, platform: Optional[PlatformInfo] = None):
        self._platform = platform

    @property
    def platform(self) -> PlatformInfo:
        if self._platform is None:
            self._platform = detect_platform()
        return self._platform

    @property
    def extension(self) -> str:
        return "zip" if self.platform.is_windows else "tar.gz"

    def archive_root_dir(self, version: str) -> str:
        return f"node-v{version}-{self.platform.platform_string()}"

    def archive_file(self, version: str) -> str:
        return f"{self.archive_root_dir(version)}.{self.extension}"

    def entry_point(self) -> str:
        # Windows zips keep node.exe at the root
        return "node.exe" if self.platform.is_windows else "bin/node"

    def checksum_url(self, version: str, root: Optional[str] = None) -> Optional[str]:
        root = root or self.public_root
        if not root.endswith("/"):
            root += "/"
        return f"{root}v{version}/SHASUMS256.txt"


class YarnNaming(DistroNaming):
    """``yarn-v1.7.0.tar.gz`` unpacking to ``yarn-v1.7.0/``."""

    kind = ToolchainKind.YARN
    public_root = "https://github.com/yarnpkg/yarn/releases/download/"

    def archive_root_dir(self, version: str) -> str:
        return f"yarn-v{version}"

    def archive_file(self, version: str) -> str:
        return f"yarn-v{version}.tar.gz"

    def entry_point(self) -> str:
        return "bin/yarn"


def naming_for(kind: ToolchainKind, platform: Optional[PlatformInfo] = None) -> DistroNaming:
    """Naming convention for ``kind``."""
    if kind is ToolchainKind.NODE:
        return NodeNaming(platform)
    return YarnNaming()
