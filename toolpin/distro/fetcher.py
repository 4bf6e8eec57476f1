"""
Distribution fetch, cache and install pipeline.

This module turns a concrete version of a toolchain into an installed
directory under ``versions/<kind>/<version>``:

1. Skip everything if the catalog already lists the version
2. Reuse a cached archive if it parses (and matches its checksum, if known)
3. Otherwise download it into the cache, in a single attempt
4. Unpack into a private staging directory under ``tmp/``
5. Rename the unpacked root into its versioned path in one step

The fetcher never writes to the catalog. Recording a successful install is
the caller's job, so a failed or partial fetch can never be mistaken for an
installed version.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from filelock import Timeout as LockTimeout

from toolpin.core.directory import HomeLayout
from toolpin.core.download import (
    ChecksumError,
    DownloadError,
    DownloadProgress,
    fetch_text,
)
from toolpin.core.exceptions import (
    CacheCorrupt,
    ChecksumMismatch,
    DownloadFailed,
    InstallRenameFailed,
    UnpackFailed,
)
from toolpin.core.filesystem import (
    ensure_containing_dir_exists,
    install_directory,
    make_staging_dir,
    safe_rmtree,
)
from toolpin.core.locking import LockManager
from toolpin.core.verification import parse_hash_text, verify_file_hash
from toolpin.core.version import Version
from toolpin.distro.archive import Archive, ArchiveError
from toolpin.distro.kinds import DistroNaming

logger = logging.getLogger(__name__)


class DistroSource(Enum):
    """Where a provisioned distribution's bytes came from."""

    PUBLIC = "public"
    REMOTE = "remote"
    CACHED = "cached"


class FetchStatus(Enum):
    """Outcome of a fetch."""

    ALREADY_INSTALLED = "already_installed"
    INSTALLED = "installed"


@dataclass(frozen=True)
class Fetched:
    """Result of DistributionFetcher.fetch()."""

    status: FetchStatus
    version: Version
    path: Path

    @property
    def newly_installed(self) -> bool:
        return self.status is FetchStatus.INSTALLED


@dataclass
class ProgressInfo:
    """Unified progress information for download and unpack."""

    phase: str
    """Current phase: 'downloading' or 'unpacking'"""

    current_bytes: int
    total_bytes: int

    @property
    def percentage(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return min(100.0, self.current_bytes / self.total_bytes * 100)


ProgressSink = Callable[[ProgressInfo], None]


def _download_progress(sink: Optional[ProgressSink]):
    if sink is None:
        return None

    def report(dp: DownloadProgress):
        sink(ProgressInfo("downloading", dp.bytes_downloaded, dp.total_bytes))

    return report


@dataclass
class Distro:
    """
    One version of one toolchain, provisioned as a parsed archive.

    Build one with public(), remote() or cached(); all three converge on
    install().
    """

    naming: DistroNaming
    version: Version
    source: DistroSource
    archive: Archive
    url: Optional[str] = None

    @classmethod
    def public(
        cls,
        naming: DistroNaming,
        version: Version,
        cache_dir: Path,
        index_root: Optional[str] = None,
        expected_sha256: Optional[str] = None,
        checksum_lookup: Optional[Callable[[], Optional[str]]] = None,
        progress: Optional[ProgressSink] = None,
        timeout: int = 30,
    ) -> "Distro":
        """Provision from the distribution server (public or configured mirror)."""
        url = naming.url(str(version), index_root)
        return cls._provision(
            naming,
            version,
            url,
            cache_dir,
            DistroSource.PUBLIC,
            expected_sha256,
            checksum_lookup,
            progress,
            timeout,
        )

    @classmethod
    def remote(
        cls,
        naming: DistroNaming,
        version: Version,
        url: str,
        cache_dir: Path,
        expected_sha256: Optional[str] = None,
        progress: Optional[ProgressSink] = None,
        timeout: int = 30,
    ) -> "Distro":
        """Provision from an explicit URL (e.g. one returned by a plugin)."""
        return cls._provision(
            naming,
            version,
            url,
            cache_dir,
            DistroSource.REMOTE,
            expected_sha256,
            None,
            progress,
            timeout,
        )

    @classmethod
    def cached(cls, naming: DistroNaming, version: Version, cache_file: Path) -> "Distro":
        """
        Provision from an archive already on disk.

        Raises:
            CacheCorrupt: If the file does not parse
        """
        return cls(naming, version, DistroSource.CACHED, Archive.load(cache_file))

    @classmethod
    def _provision(
        cls,
        naming: DistroNaming,
        version: Version,
        url: str,
        cache_dir: Path,
        source: DistroSource,
        expected_sha256: Optional[str],
        checksum_lookup: Optional[Callable[[], Optional[str]]],
        progress: Optional[ProgressSink],
        timeout: int,
    ) -> "Distro":
        cache_file = cache_dir / naming.archive_file(str(version))

        distro = cls._from_cache(naming, version, cache_file, expected_sha256)
        if distro is not None:
            return distro

        version_str = str(version)
        kind = naming.kind.value

        if expected_sha256 is None and checksum_lookup is not None:
            expected_sha256 = checksum_lookup()

        ensure_containing_dir_exists(cache_file)
        try:
            archive = Archive.fetch(
                url,
                cache_file,
                expected_sha256=expected_sha256,
                progress_callback=_download_progress(progress),
                timeout=timeout,
            )
        except ChecksumError as e:
            raise ChecksumMismatch(kind, version_str, e) from e
        except DownloadError as e:
            raise DownloadFailed(kind, version_str, e) from e
        except CacheCorrupt as e:
            # Transfer completed but the body is not an archive
            cache_file.unlink(missing_ok=True)
            raise DownloadFailed(kind, version_str, e) from e

        return cls(naming, version, source, archive, url)

    @classmethod
    def _from_cache(
        cls,
        naming: DistroNaming,
        version: Version,
        cache_file: Path,
        expected_sha256: Optional[str],
    ) -> Optional["Distro"]:
        """Return a cached Distro if ``cache_file`` is valid, discarding it otherwise."""
        if not cache_file.exists():
            return None

        try:
            distro = cls.cached(naming, version, cache_file)
        except CacheCorrupt as e:
            logger.warning(f"Discarding corrupt cache file: {e}")
            cache_file.unlink(missing_ok=True)
            return None

        if expected_sha256 and not verify_file_hash(cache_file, expected_sha256):
            logger.warning(f"Discarding cache file with wrong checksum: {cache_file}")
            cache_file.unlink(missing_ok=True)
            return None

        logger.info(f"Using cached archive: {cache_file}")
        return distro

    def install(
        self,
        destination: Path,
        staging_root: Path,
        progress: Optional[ProgressSink] = None,
    ) -> Path:
        """
        Unpack into a staging directory and rename the result into ``destination``.

        Args:
            destination: Final versioned install path
            staging_root: Parent for the private staging directory; must be
                on the same filesystem as ``destination``
            progress: Optional progress sink

        Returns:
            ``destination``

        Raises:
            UnpackFailed: If extraction fails
            InstallRenameFailed: If the rename into ``destination`` fails
        """
        kind = self.naming.kind.value
        version_str = str(self.version)
        staging = make_staging_dir(staging_root, prefix=f"{kind}-{version_str}-")

        # Denominator only; the gzip trailer or member sizes can be off
        total = self.archive.uncompressed_size or self.archive.compressed_size
        done = 0

        def unpack_progress(read: int):
            nonlocal done
            done += read
            if progress:
                progress(ProgressInfo("unpacking", done, total))

        try:
            try:
                self.archive.unpack(staging, unpack_progress)
            except ArchiveError as e:
                raise UnpackFailed(kind, version_str, e) from e

            root = self._unpacked_root(staging)
            try:
                install_directory(root, destination)
            except OSError as e:
                raise InstallRenameFailed(kind, version_str, e) from e
        finally:
            safe_rmtree(staging, require_prefix=staging_root)

        logger.info(f"Installed {kind} v{version_str} at {destination}")
        return destination

    def _unpacked_root(self, staging: Path) -> Path:
        """
        Locate the directory to rename into place.

        Archives normally hold a single ``<name>-v<version>`` directory.
        """
        expected = staging / self.naming.archive_root_dir(str(self.version))
        if expected.is_dir():
            return expected

        items = list(staging.iterdir())
        if len(items) == 1 and items[0].is_dir():
            return items[0]

        # No single root: the staging directory itself is the install tree
        return staging


class DistributionFetcher:
    """
    Fetches and installs versions of one toolchain kind.

    Example:
        >>> fetcher = DistributionFetcher(naming_for(ToolchainKind.NODE), layout)
        >>> result = fetcher.fetch(parse_version("10.1.0"), catalog)
        >>> if result.newly_installed:
        ...     catalog.record_installed(ToolchainKind.NODE, result.version)
    """

    def __init__(
        self,
        naming: DistroNaming,
        layout: HomeLayout,
        index_root: Optional[str] = None,
        verify_checksums: bool = False,
        lock_manager: Optional[LockManager] = None,
        timeout: int = 30,
    ):
        """
        Initialize fetcher.

        Args:
            naming: Naming convention of the toolchain kind
            layout: toolpin home layout
            index_root: Distribution server root (default: public server)
            verify_checksums: Look up published checksums before downloading
            lock_manager: Optional lock manager. If None, creates one.
            timeout: HTTP timeout in seconds
        """
        self.naming = naming
        self.kind = naming.kind
        self.layout = layout
        self.index_root = index_root
        self.verify_checksums = verify_checksums
        self.lock_manager = lock_manager or LockManager(layout.lock_dir)
        self.timeout = timeout

    @property
    def cache_dir(self) -> Path:
        return self.layout.cache_dir(self.kind.value)

    def cache_file(self, version: Version) -> Path:
        """Expected cache path for ``version``."""
        return self.cache_dir / self.naming.archive_file(str(version))

    def install_dir(self, version: Version) -> Path:
        return self.layout.version_dir(self.kind.value, str(version))

    def fetch(
        self,
        version: Version,
        catalog,
        url: Optional[str] = None,
        expected_sha256: Optional[str] = None,
        progress: Optional[ProgressSink] = None,
    ) -> Fetched:
        """
        Make ``version`` available on disk.

        Safe to call unconditionally: a version the catalog already lists is
        returned immediately without touching the filesystem or network.

        Args:
            version: Concrete version to install
            catalog: Catalog consulted (read-only) for installed versions
            url: Archive URL; default follows the server naming convention
            expected_sha256: Known digest of the archive, if any
            progress: Optional progress sink

        Returns:
            Fetched describing whether anything was installed

        Raises:
            DownloadFailed: If the archive could not be transferred
            UnpackFailed: If the archive could not be extracted
            InstallRenameFailed: If the unpacked tree could not be moved into place
        """
        if catalog.contains(self.kind, version):
            logger.debug(f"{self.kind} v{version} already installed")
            return Fetched(FetchStatus.ALREADY_INSTALLED, version, self.install_dir(version))

        version_str = str(version)
        destination = self.install_dir(version)

        try:
            with self.lock_manager.install_lock(self.kind.value, version_str):
                if destination.is_dir():
                    if not self.naming.is_complete_install(destination):
                        raise InstallRenameFailed(
                            self.kind.value,
                            version_str,
                            message=(
                                f"Failed to install {self.kind} v{version}: {destination} "
                                f"exists but has no {self.naming.entry_point()}"
                            ),
                        )
                    # Completed by a concurrent process that has not recorded it yet
                    logger.info(f"{self.kind} v{version} found at {destination}")
                    return Fetched(FetchStatus.INSTALLED, version, destination)

                start = time.time()
                distro = self._provision(version, url, expected_sha256, progress)
                distro.install(destination, self.layout.tmp_dir, progress)
                logger.debug(
                    f"Fetched {self.kind} v{version} from {distro.source.value} "
                    f"in {time.time() - start:.2f}s"
                )
        except LockTimeout as e:
            raise InstallRenameFailed(self.kind.value, version_str, e) from e

        return Fetched(FetchStatus.INSTALLED, version, destination)

    def _provision(
        self,
        version: Version,
        url: Optional[str],
        expected_sha256: Optional[str],
        progress: Optional[ProgressSink],
    ) -> Distro:
        if url:
            return Distro.remote(
                self.naming,
                version,
                url,
                self.cache_dir,
                expected_sha256=expected_sha256,
                progress=progress,
                timeout=self.timeout,
            )

        lookup = None
        if self.verify_checksums:
            lookup = lambda: self.published_checksum(version)  # noqa: E731

        return Distro.public(
            self.naming,
            version,
            self.cache_dir,
            index_root=self.index_root,
            expected_sha256=expected_sha256,
            checksum_lookup=lookup,
            progress=progress,
            timeout=self.timeout,
        )

    def published_checksum(self, version: Version) -> Optional[str]:
        """
        Look up the published SHA-256 of this version's archive.

        Returns:
            The digest, or None if the toolchain publishes no listing

        Raises:
            DownloadFailed: If the listing cannot be fetched or lacks the archive
        """
        version_str = str(version)
        listing_url = self.naming.checksum_url(version_str, self.index_root)
        if listing_url is None:
            return None

        try:
            text = fetch_text(listing_url, timeout=self.timeout)
        except DownloadError as e:
            raise DownloadFailed(self.kind.value, version_str, e) from e

        archive_file = self.naming.archive_file(version_str)
        digest = parse_hash_text(text, source=listing_url).get(archive_file)
        if digest is None:
            raise DownloadFailed(
                self.kind.value,
                version_str,
                message=f"{listing_url} has no checksum for {archive_file}",
            )
        return digest
