"""
Persistent catalog of installed toolchain versions.

The catalog records, per toolchain kind, the set of installed versions and
the user's default version. It is the only component that changes that
state, and it does so only after an install has fully completed or the user
explicitly picks a default.

Every mutation is a read-modify-write under a cross-process file lock, and
every read goes back to disk, so a read always sees the latest mutation
made by any toolpin process.

File format (catalog.json):
    {
      "version": 1,
      "node": {"default": "10.1.0", "installed": ["8.11.2", "10.1.0"]},
      "yarn": {"default": null, "installed": []}
    }
"""

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional, Set

from filelock import FileLock, Timeout

from toolpin.core.exceptions import CatalogError, CatalogLockTimeout, InvalidVersionError
from toolpin.core.filesystem import atomic_write
from toolpin.core.version import Version, VersionSpec, parse_version
from toolpin.distro.kinds import ToolchainKind

logger = logging.getLogger(__name__)

CATALOG_FORMAT_VERSION = 1


def _empty_catalog() -> dict:
    data = {"version": CATALOG_FORMAT_VERSION}
    for kind in ToolchainKind:
        data[kind.value] = {"default": None, "installed": []}
    return data


class Catalog:
    """
    Installed versions and defaults for every toolchain kind.

    Example:
        >>> catalog = Catalog(Path("~/.toolpin/catalog.json").expanduser())
        >>> catalog.record_installed(ToolchainKind.NODE, parse_version("10.1.0"))
        >>> catalog.contains(ToolchainKind.NODE, parse_version("10.1.0"))
        True
    """

    def __init__(self, catalog_path: Path, lock_path: Optional[Path] = None, lock_timeout: int = 30):
        """
        Initialize catalog.

        Args:
            catalog_path: Path to catalog.json
            lock_path: Lock file (default: ``lock/catalog.lock`` next to the catalog)
            lock_timeout: Timeout in seconds for acquiring the lock
        """
        self.catalog_path = Path(catalog_path)
        self.lock_path = (
            Path(lock_path) if lock_path else self.catalog_path.parent / "lock" / "catalog.lock"
        )
        self.lock_timeout = lock_timeout

        logger.debug(f"Initialized catalog at {self.catalog_path}")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> dict:
        """
        Load catalog from disk.

        Returns:
            Catalog data dictionary (empty structure if the file is absent)

        Raises:
            CatalogError: If the file cannot be read or decoded
        """
        if not self.catalog_path.exists():
            return _empty_catalog()

        try:
            with open(self.catalog_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to load catalog: {e}")
            raise CatalogError(f"Failed to load catalog {self.catalog_path}: {e}") from e

        if not isinstance(data, dict) or data.get("version") != CATALOG_FORMAT_VERSION:
            raise CatalogError(f"Unsupported catalog format in {self.catalog_path}")

        for kind in ToolchainKind:
            section = data.setdefault(kind.value, {})
            section.setdefault("default", None)
            section.setdefault("installed", [])

        return data

    def _save(self, data: dict):
        """Save catalog to disk atomically."""
        try:
            atomic_write(self.catalog_path, json.dumps(data, indent=2) + "\n")
        except OSError as e:
            logger.error(f"Failed to save catalog: {e}")
            raise CatalogError(f"Failed to save catalog {self.catalog_path}: {e}") from e

    @contextmanager
    def _lock(self):
        """
        Context manager for catalog locking.

        Raises:
            CatalogLockTimeout: If lock cannot be acquired within timeout
        """
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock = FileLock(self.lock_path, timeout=self.lock_timeout)

        try:
            with lock:
                yield
        except Timeout as e:
            logger.error(f"Failed to acquire catalog lock within {self.lock_timeout}s")
            raise CatalogLockTimeout(
                f"Could not acquire catalog lock within {self.lock_timeout} seconds"
            ) from e

    @staticmethod
    def _parse_entries(kind: ToolchainKind, entries: List[str]) -> Set[Version]:
        versions = set()
        for entry in entries:
            try:
                versions.add(parse_version(entry))
            except InvalidVersionError:
                logger.warning(f"Ignoring invalid {kind} entry in catalog: {entry!r}")
        return versions

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def installed_versions(self, kind: ToolchainKind) -> Set[Version]:
        """Set of installed versions of ``kind``."""
        data = self._load()
        return self._parse_entries(kind, data[kind.value]["installed"])

    def contains(self, kind: ToolchainKind, version: Version) -> bool:
        """Return True if ``version`` of ``kind`` is installed."""
        return version in self.installed_versions(kind)

    def default(self, kind: ToolchainKind) -> Optional[Version]:
        """
        The user default version of ``kind``, or None when unset.

        The default is not required to be installed.
        """
        raw = self._load()[kind.value]["default"]
        if raw is None:
            return None
        try:
            return parse_version(raw)
        except InvalidVersionError:
            logger.warning(f"Ignoring invalid {kind} default in catalog: {raw!r}")
            return None

    def resolve_installed(self, kind: ToolchainKind, spec: VersionSpec) -> Optional[Version]:
        """Highest installed version satisfying ``spec``, or None."""
        return spec.select(self.installed_versions(kind))

    def latest_installed(self, kind: ToolchainKind) -> Optional[Version]:
        versions = self.installed_versions(kind)
        return max(versions) if versions else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def record_installed(self, kind: ToolchainKind, version: Version):
        """
        Add ``version`` to the installed set.

        Only call this after the version's directory has been renamed into place.
        """
        with self._lock():
            data = self._load()
            installed = self._parse_entries(kind, data[kind.value]["installed"])
            if version in installed:
                logger.debug(f"{kind} v{version} already recorded")
                return
            installed.add(version)
            data[kind.value]["installed"] = [str(v) for v in sorted(installed)]
            self._save(data)

        logger.info(f"Recorded {kind} v{version} as installed")

    def remove_installed(self, kind: ToolchainKind, version: Version):
        """Remove ``version`` from the installed set. The default is left alone."""
        with self._lock():
            data = self._load()
            installed = self._parse_entries(kind, data[kind.value]["installed"])
            if version not in installed:
                logger.warning(f"{kind} v{version} is not recorded as installed")
                return
            installed.discard(version)
            data[kind.value]["installed"] = [str(v) for v in sorted(installed)]
            self._save(data)

        logger.info(f"Removed {kind} v{version} from catalog")

    def set_default(self, kind: ToolchainKind, version: Optional[Version]):
        """Set (or clear, with None) the user default version of ``kind``."""
        with self._lock():
            data = self._load()
            data[kind.value]["default"] = str(version) if version is not None else None
            self._save(data)

        if version is None:
            logger.info(f"Cleared default {kind} version")
        else:
            logger.info(f"Default {kind} version set to {version}")
