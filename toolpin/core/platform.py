"""
Platform detection for toolpin.

Node publishes one archive per OS/architecture pair. This module detects
the current pair once per process and maps it onto Node's naming
(``linux``/``darwin``/``win`` and ``x64``/``x86``/``arm64``/``armv7l``).

Usage:
    from toolpin.core.platform import detect_platform

    info = detect_platform()
    print(info.platform_string())   # e.g. 'linux-x64'
"""

import functools
import platform
from dataclasses import dataclass

from toolpin.core.exceptions import UnsupportedPlatformError

_OS_NAMES = {
    "linux": "linux",
    "darwin": "darwin",
    "windows": "win",
}

_ARCH_NAMES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "armv7l": "armv7l",
    "armv7": "armv7l",
}


@dataclass(frozen=True)
class PlatformInfo:
    """
    Platform information in Node distribution naming.

    Attributes:
        os: 'linux', 'darwin' or 'win'
        arch: 'x64', 'x86', 'arm64' or 'armv7l'
    """

    os: str
    arch: str

    def platform_string(self) -> str:
        """
        Get the platform suffix used in archive names.

        Example:
            >>> PlatformInfo('linux', 'x64').platform_string()
            'linux-x64'
        """
        return f"{self.os}-{self.arch}"

    @property
    def is_windows(self) -> bool:
        return self.os == "win"

    def __str__(self) -> str:
        return self.platform_string()


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect current platform information.

    This function is cached - it only runs detection once per process.

    Raises:
        UnsupportedPlatformError: If the OS or architecture is not published
    """
    system = platform.system().lower()
    machine = platform.machine().lower()

    os_name = _OS_NAMES.get(system)
    if os_name is None:
        raise UnsupportedPlatformError(f"Unsupported operating system: {system}")

    arch = _ARCH_NAMES.get(machine)
    if arch is None:
        raise UnsupportedPlatformError(f"Unsupported CPU architecture: {machine}")

    return PlatformInfo(os=os_name, arch=arch)


def clear_platform_cache():
    """Clear the cached detection result (used by tests)."""
    detect_platform.cache_clear()
