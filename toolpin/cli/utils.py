"""
Shared utilities for CLI commands.

Provides common functionality used across multiple CLI commands to
keep output and argument handling consistent.
"""

import logging
import sys
from typing import Optional

from toolpin.core.exceptions import InvalidVersionError
from toolpin.core.version import VersionSpec
from toolpin.distro.fetcher import ProgressInfo

logger = logging.getLogger(__name__)


# ============================================================================
# Argument Conversion
# ============================================================================


def parse_spec(text: str) -> VersionSpec:
    """
    Convert a command-line version argument into a VersionSpec.

    Raises:
        InvalidVersionError: If the argument is neither a version nor a range
    """
    spec = VersionSpec.parse(text)
    logger.debug(f"Parsed '{text}' as {spec.mode.value} spec")
    return spec


def parse_exact(text: str):
    """
    Convert a command-line argument that must name one exact version.

    Raises:
        InvalidVersionError: If the argument is a range
    """
    spec = VersionSpec.parse(text)
    if not spec.is_exact:
        raise InvalidVersionError(f"Expected an exact version, got '{text}'")
    return spec.version


# ============================================================================
# Output
# ============================================================================


def safe_print(message: str, file=None):
    """
    Print message with safe encoding handling for Windows console.

    Falls back to ASCII-safe characters if Unicode symbols can't be encoded.

    Args:
        message: Message to print
        file: Output file (default: stdout)
    """
    try:
        print(message, file=file)
    except UnicodeEncodeError:
        safe_message = message.replace("✓", "[OK]").replace("→", "->").replace("✗", "[ERROR]")
        print(safe_message, file=file)


def _format_bytes(count: int) -> str:
    mb = count / (1024 * 1024)
    return f"{mb:.1f} MB"


class ProgressLine:
    """
    Renders fetch progress as a single updating line on stderr.

    Only draws when the stream is a terminal, so piped output stays clean.

    Example:
        >>> with ProgressLine("node v10.1.0") as progress:
        ...     session.fetch(ToolchainKind.NODE, spec, progress)
    """

    def __init__(self, label: str, stream=None, enabled: Optional[bool] = None):
        self.label = label
        self.stream = stream or sys.stderr
        if enabled is None:
            enabled = hasattr(self.stream, "isatty") and self.stream.isatty()
        self.enabled = enabled
        self._width = 0

    def __call__(self, info: ProgressInfo):
        if not self.enabled:
            return

        if info.total_bytes > 0:
            text = (
                f"{info.phase.capitalize()} {self.label}: {info.percentage:5.1f}% "
                f"({_format_bytes(info.current_bytes)} / {_format_bytes(info.total_bytes)})"
            )
        else:
            text = f"{info.phase.capitalize()} {self.label}: {_format_bytes(info.current_bytes)}"

        padding = " " * max(0, self._width - len(text))
        self._width = len(text)
        self.stream.write(f"\r{text}{padding}")
        self.stream.flush()

    def close(self):
        if self.enabled and self._width:
            self.stream.write("\r" + " " * self._width + "\r")
            self.stream.flush()
            self._width = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
