"""
Centralized exception hierarchy for toolpin.

Every failure a toolpin operation can surface is a subclass of ToolpinError.
Each class carries an ``exit_code`` that the CLI uses as the process exit
status, so callers can tell a network problem from a misconfigured plugin
without parsing messages.
"""

from typing import Optional


# ============================================================================
# Exit Codes
# ============================================================================

EXIT_FAILURE = 1
EXIT_CONFIGURATION = 2
EXIT_NO_VERSION_MATCH = 3
EXIT_NETWORK = 4
EXIT_FILESYSTEM = 5
EXIT_PLUGIN = 6
EXIT_ENVIRONMENT = 7
EXIT_INTERRUPTED = 130


# ============================================================================
# Base Exceptions
# ============================================================================


class ToolpinError(Exception):
    """Base exception for all toolpin errors."""

    exit_code = EXIT_FAILURE


class ConfigError(ToolpinError):
    """Configuration file is unreadable or has the wrong shape."""

    exit_code = EXIT_CONFIGURATION


class UnsupportedPlatformError(ToolpinError):
    """The current OS or CPU architecture has no published distribution."""

    exit_code = EXIT_ENVIRONMENT


# ============================================================================
# Version Exceptions
# ============================================================================


class InvalidVersionError(ToolpinError):
    """Invalid version string or version requirement."""

    exit_code = EXIT_NO_VERSION_MATCH


class ResolutionUnsatisfiable(ToolpinError):
    """No version matching a requirement exists in any source."""

    exit_code = EXIT_NO_VERSION_MATCH

    def __init__(self, kind: str, requirement: str, source: str = ""):
        self.kind = kind
        self.requirement = requirement
        self.source = source
        msg = f"No {kind} version matches '{requirement}'"
        if source:
            msg += f" ({source})"
        super().__init__(msg)


# ============================================================================
# Fetch Exceptions
# ============================================================================


class FetchError(ToolpinError):
    """
    Base exception for failures while provisioning a distribution.

    Attributes:
        kind: Toolchain kind name ('node', 'yarn')
        version: Version string that was being fetched
        cause: Underlying exception, if any
    """

    def __init__(
        self,
        kind: str,
        version: str,
        cause: Optional[BaseException] = None,
        message: str = "",
    ):
        self.kind = kind
        self.version = version
        self.cause = cause
        if not message:
            message = f"{self._action} {kind} v{version}"
            if cause is not None:
                message += f": {cause}"
        super().__init__(message)

    _action = "Failed to fetch"


class DownloadFailed(FetchError):
    """Transfer of a distribution archive failed."""

    exit_code = EXIT_NETWORK
    _action = "Failed to download"


class ChecksumMismatch(DownloadFailed):
    """Downloaded archive does not match its published SHA-256 digest."""

    _action = "Checksum mismatch for"


class UnpackFailed(FetchError):
    """Archive could not be extracted into the staging directory."""

    exit_code = EXIT_FILESYSTEM
    _action = "Failed to unpack"


class InstallRenameFailed(FetchError):
    """Unpacked directory could not be moved into its versioned path."""

    exit_code = EXIT_FILESYSTEM
    _action = "Failed to install"


class CacheCorrupt(ToolpinError):
    """
    A cached archive cannot be parsed.

    Handled inside the fetch pipeline by discarding the file and downloading
    it again; it only escapes when a freshly downloaded archive is corrupt.
    """

    exit_code = EXIT_FILESYSTEM

    def __init__(self, path, cause: Optional[BaseException] = None):
        self.path = path
        self.cause = cause
        msg = f"Corrupt archive: {path}"
        if cause is not None:
            msg += f" ({cause})"
        super().__init__(msg)


# ============================================================================
# Catalog Exceptions
# ============================================================================


class CatalogError(ToolpinError):
    """Catalog file could not be read or written."""

    exit_code = EXIT_FILESYSTEM


class CatalogLockTimeout(CatalogError):
    """Raised when the catalog lock cannot be acquired within timeout."""

    pass


# ============================================================================
# Project Exceptions
# ============================================================================


class ManifestError(ToolpinError):
    """Project manifest (package.json) is unreadable or malformed."""

    exit_code = EXIT_CONFIGURATION


class NotInProject(ToolpinError):
    """Raised when a pin is requested outside of a project."""

    exit_code = EXIT_CONFIGURATION

    def __init__(self, message: str = "Not in a node package"):
        super().__init__(message)


# ============================================================================
# Plugin Exceptions
# ============================================================================


class PluginError(ToolpinError):
    """
    Base exception for resolver plugin failures.

    Attributes:
        command: Configured plugin command line
        stderr: Diagnostic text the plugin wrote to stderr
    """

    exit_code = EXIT_PLUGIN

    def __init__(self, message: str, command: str = "", stderr: str = ""):
        self.command = command
        self.stderr = stderr
        super().__init__(message)


class PluginSpawnFailed(PluginError):
    """Plugin could not be started, timed out, or exited non-zero."""

    def __init__(
        self,
        message: str,
        command: str = "",
        stderr: str = "",
        returncode: Optional[int] = None,
    ):
        self.returncode = returncode
        super().__init__(message, command=command, stderr=stderr)


class PluginProtocolViolation(PluginError):
    """Plugin ran but its stdout is not a valid resolution response."""

    def __init__(self, message: str, raw_output: str, command: str = "", stderr: str = ""):
        self.raw_output = raw_output
        super().__init__(message, command=command, stderr=stderr)
