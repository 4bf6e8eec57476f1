"""
The state of one toolpin invocation.

A Session ties together the working directory's project (if any), the user
configuration and the catalog of installed versions. Configuration and
catalog are loaded on first use and reused for the rest of the invocation.

Example:
    >>> session = Session()
    >>> session.current(ToolchainKind.NODE)   # pinned version, fetched if needed
    Version('10.1.0')
"""

import logging
import os
import time
from enum import Enum
from pathlib import Path
from typing import List, Optional

from filelock import Timeout as LockTimeout

from toolpin.catalog import Catalog
from toolpin.config.parser import ToolpinConfig, load_config
from toolpin.core.directory import HomeLayout
from toolpin.core.exceptions import (
    InstallRenameFailed,
    InvalidVersionError,
    NotInProject,
    ToolpinError,
)
from toolpin.core.filesystem import FilesystemError, make_staging_dir, safe_rmtree
from toolpin.core.locking import LockManager
from toolpin.core.version import Version, VersionSpec, parse_version
from toolpin.distro.fetcher import DistributionFetcher, Fetched, ProgressSink
from toolpin.distro.kinds import ToolchainKind, naming_for
from toolpin.project import Project
from toolpin.resolve.resolver import VersionResolver
from toolpin.resolve.strategy import Resolution

logger = logging.getLogger(__name__)

NODE_VERSION_ENV_VAR = "TOOLPIN_NODE_VERSION"


class ActivityKind(Enum):
    """What the user asked toolpin to do."""

    FETCH = "fetch"
    INSTALL = "install"
    UNINSTALL = "uninstall"
    CURRENT = "current"
    DEFAULT = "default"
    PIN = "pin"
    LIST = "list"

    def __str__(self) -> str:
        return self.value


class EventLog:
    """
    Records activity lifecycle events for one invocation.

    Events are kept in memory and emitted on the ``toolpin.events`` logger.
    """

    def __init__(self):
        self.events: List[dict] = []
        self._logger = logging.getLogger("toolpin.events")

    def _add(self, activity: ActivityKind, event: str, **fields):
        record = {"activity": activity.value, "event": event, "timestamp": time.time()}
        record.update(fields)
        self.events.append(record)
        self._logger.debug(f"{activity} {event} {fields if fields else ''}".rstrip())

    def add_event_start(self, activity: ActivityKind):
        self._add(activity, "start")

    def add_event_end(self, activity: ActivityKind, exit_code: int):
        self._add(activity, "end", exit_code=exit_code)

    def add_event_error(self, activity: ActivityKind, error: Exception):
        self._add(
            activity,
            "error",
            error=str(error),
            error_type=type(error).__name__,
            exit_code=getattr(error, "exit_code", 1),
        )


class Session:
    """
    The user's state during an invocation: project, configuration and catalog.

    Attributes:
        layout: toolpin home layout
        project: Project containing the working directory, or None
        events: Activity event log
    """

    def __init__(
        self,
        layout: Optional[HomeLayout] = None,
        cwd: Optional[Path] = None,
    ):
        """
        Initialize session.

        Args:
            layout: Home layout (default: from TOOLPIN_HOME or ~/.toolpin)
            cwd: Directory used to find the project (default: current directory)
        """
        self.layout = layout or HomeLayout.default()
        self.project: Optional[Project] = Project.for_dir(cwd or Path.cwd())
        self.events = EventLog()
        self.lock_manager = LockManager(self.layout.lock_dir)
        self._config: Optional[ToolpinConfig] = None
        self._catalog: Optional[Catalog] = None

    # ------------------------------------------------------------------
    # Lazily loaded state
    # ------------------------------------------------------------------

    @property
    def config(self) -> ToolpinConfig:
        if self._config is None:
            self._config = load_config(self.layout.config_file)
        return self._config

    @property
    def catalog(self) -> Catalog:
        if self._catalog is None:
            self._catalog = Catalog(
                self.layout.catalog_file, lock_path=self.layout.lock_dir / "catalog.lock"
            )
        return self._catalog

    def resolver(self) -> VersionResolver:
        return VersionResolver(self.catalog, self.config)

    def fetcher(self, kind: ToolchainKind) -> DistributionFetcher:
        tool = self.config.tool(kind.value)
        return DistributionFetcher(
            naming_for(kind),
            self.layout,
            index_root=tool.index,
            verify_checksums=self.config.verify_checksums,
            lock_manager=self.lock_manager,
        )

    # ------------------------------------------------------------------
    # Project
    # ------------------------------------------------------------------

    def in_pinned_project(self) -> bool:
        """True if the current project pins at least Node."""
        return self.project is not None and self.project.is_pinned()

    def _require_project(self) -> Project:
        if self.project is None:
            raise NotInProject()
        return self.project

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    def current(self, kind: ToolchainKind, progress: Optional[ProgressSink] = None) -> Optional[Version]:
        """
        The version of ``kind`` active for this session.

        Inside a project pinning ``kind``, the pinned version wins and is
        fetched first if it is not installed. Otherwise this is the user
        default, which may be None.
        """
        if self.project is not None:
            pinned = self.project.manifest.pinned(kind)
            if pinned is not None:
                if self.catalog.contains(kind, pinned):
                    return pinned
                logger.info(f"Project pins {kind} v{pinned}; fetching it")
                fetched = self.fetch(kind, VersionSpec.exact(pinned), progress)
                return fetched.version

        return self.user_version(kind)

    def user_version(self, kind: ToolchainKind) -> Optional[Version]:
        """
        The user-global version of ``kind``.

        For Node, TOOLPIN_NODE_VERSION overrides the catalog default.
        """
        if kind is ToolchainKind.NODE:
            override = os.environ.get(NODE_VERSION_ENV_VAR)
            if override:
                try:
                    return parse_version(override)
                except InvalidVersionError as e:
                    raise InvalidVersionError(f"{NODE_VERSION_ENV_VAR}: {e}") from e
        return self.catalog.default(kind)

    def resolve(self, kind: ToolchainKind, spec: VersionSpec) -> Resolution:
        """Resolve ``spec`` without installing anything."""
        return self.resolver().resolve(spec, kind)

    def fetch(
        self,
        kind: ToolchainKind,
        spec: VersionSpec,
        progress: Optional[ProgressSink] = None,
    ) -> Fetched:
        """
        Resolve ``spec`` and make that version available on disk.

        The catalog is updated only after a successful install.
        """
        resolution = self.resolve(kind, spec)
        fetched = self.fetcher(kind).fetch(
            resolution.version,
            self.catalog,
            url=resolution.url,
            expected_sha256=resolution.sha256,
            progress=progress,
        )
        if fetched.newly_installed:
            self.catalog.record_installed(kind, fetched.version)
        return fetched

    def install(
        self,
        kind: ToolchainKind,
        spec: VersionSpec,
        progress: Optional[ProgressSink] = None,
    ) -> Fetched:
        """Fetch ``spec`` and make it the user default."""
        fetched = self.fetch(kind, spec, progress)
        self.catalog.set_default(kind, fetched.version)
        return fetched

    def set_default(self, kind: ToolchainKind, spec: VersionSpec) -> Version:
        """
        Make the version matching ``spec`` the user default.

        Nothing is fetched; an uninstalled default is fetched when first used.
        """
        version = self.resolve(kind, spec).version
        self.catalog.set_default(kind, version)
        return version

    def pin(self, kind: ToolchainKind, spec: VersionSpec) -> Version:
        """
        Resolve ``spec`` and record it in the project's package.json.

        Raises:
            NotInProject: Outside of a project
        """
        project = self._require_project()
        version = self.resolve(kind, spec).version
        project.pin(kind, version)
        return version

    def uninstall(self, kind: ToolchainKind, version: Version) -> bool:
        """
        Remove an installed version.

        Returns:
            False if the version was not installed
        """
        if not self.catalog.contains(kind, version):
            return False

        version_str = str(version)
        install_dir = self.layout.version_dir(kind.value, version_str)
        try:
            with self.lock_manager.install_lock(kind.value, version_str, timeout=60):
                self.catalog.remove_installed(kind, version)
                if install_dir.exists():
                    # Move out of versions/ in one step, then delete at leisure
                    trash = make_staging_dir(
                        self.layout.tmp_dir, prefix=f"uninstall-{kind.value}-{version_str}-"
                    )
                    try:
                        os.rename(install_dir, trash / install_dir.name)
                    finally:
                        safe_rmtree(trash, require_prefix=self.layout.tmp_dir)
        except LockTimeout as e:
            raise InstallRenameFailed(
                kind.value,
                version_str,
                e,
                message=f"{kind} v{version} is locked by another toolpin process",
            ) from e
        except (OSError, FilesystemError) as e:
            raise InstallRenameFailed(
                kind.value,
                version_str,
                e,
                message=f"Failed to uninstall {kind} v{version}: {e}",
            ) from e
        return True

    # ------------------------------------------------------------------
    # Activity lifecycle
    # ------------------------------------------------------------------

    def start(self, activity: ActivityKind):
        self.events.add_event_start(activity)

    def end(self, activity: ActivityKind, exit_code: int):
        self.events.add_event_end(activity, exit_code)

    def error(self, activity: ActivityKind, error: ToolpinError):
        self.events.add_event_error(activity, error)
