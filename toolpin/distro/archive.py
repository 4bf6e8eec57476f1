"""
Distribution archives on disk.

An Archive is a downloaded ``.tar.gz`` or ``.zip`` file that has been
opened and fully parsed. Parsing doubles as the cache validity check: a
file that was cut short mid-download, or otherwise damaged, fails to parse
and is reported as CacheCorrupt instead of being unpacked.
"""

import logging
import sys
import tarfile
import zipfile
import zlib
from pathlib import Path
from typing import Callable, List, Optional

from toolpin.core.download import DownloadProgress, download_file
from toolpin.core.exceptions import CacheCorrupt
from toolpin.core.filesystem import validate_member_path

logger = logging.getLogger(__name__)

TAR_GZ = "tar.gz"
ZIP = "zip"

_PARSE_ERRORS = (tarfile.TarError, zipfile.BadZipFile, zlib.error, EOFError, OSError)


class ArchiveError(Exception):
    """Failed to extract an archive."""

    pass


def archive_format(path: Path) -> str:
    """
    Detect the container format from the file name.

    Raises:
        ArchiveError: If the extension is not .tar.gz, .tgz or .zip
    """
    name = path.name.lower()
    if name.endswith((".tar.gz", ".tgz")):
        return TAR_GZ
    if name.endswith(".zip"):
        return ZIP
    raise ArchiveError(f"Unsupported archive format: {path.name}")


class Archive:
    """
    A parsed distribution archive.

    Attributes:
        path: Location of the archive file
        format: 'tar.gz' or 'zip'
        compressed_size: Size of the file on disk in bytes
        uncompressed_size: Total size of the regular files inside
    """

    def __init__(self, path: Path, fmt: str, member_sizes: List[int]):
        self.path = path
        self.format = fmt
        self.compressed_size = path.stat().st_size
        self.uncompressed_size: Optional[int] = sum(member_sizes) if member_sizes else None
        self.member_count = len(member_sizes)

    @classmethod
    def load(cls, path: Path) -> "Archive":
        """
        Open and parse an archive that is already on disk.

        Raises:
            CacheCorrupt: If the file is missing, truncated or not an archive
        """
        path = Path(path)
        if not path.is_file():
            raise CacheCorrupt(path, FileNotFoundError(f"No such file: {path}"))

        try:
            fmt = archive_format(path)
        except ArchiveError as e:
            raise CacheCorrupt(path, e) from e

        try:
            if fmt == TAR_GZ:
                with tarfile.open(path, "r:gz") as tar:
                    sizes = [m.size for m in tar.getmembers() if m.isfile()]
            else:
                with zipfile.ZipFile(path) as zf:
                    bad_member = zf.testzip()
                    if bad_member is not None:
                        raise zipfile.BadZipFile(f"CRC mismatch in {bad_member}")
                    sizes = [i.file_size for i in zf.infolist() if not i.is_dir()]
        except _PARSE_ERRORS as e:
            raise CacheCorrupt(path, e) from e

        logger.debug(f"Loaded archive {path.name} ({len(sizes)} files)")
        return cls(path, fmt, sizes)

    @classmethod
    def fetch(
        cls,
        url: str,
        cache_file: Path,
        expected_sha256: Optional[str] = None,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
        timeout: int = 30,
    ) -> "Archive":
        """
        Download ``url`` into ``cache_file`` and parse the result.

        Raises:
            DownloadError: If the transfer fails
            ChecksumError: If the body does not match ``expected_sha256``
            CacheCorrupt: If the transfer completed but is not a valid archive
        """
        download_file(
            url,
            cache_file,
            expected_sha256=expected_sha256,
            progress_callback=progress_callback,
            timeout=timeout,
        )
        return cls.load(cache_file)

    def unpack(
        self,
        destination: Path,
        progress_callback: Optional[Callable[[int], None]] = None,
    ) -> None:
        """
        Extract every member into ``destination``.

        Args:
            destination: Directory to extract into (created if missing)
            progress_callback: Called with the uncompressed byte count of
                each member as it is written

        Raises:
            ArchiveError: If extraction fails or a member escapes ``destination``
        """
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)

        try:
            if self.format == TAR_GZ:
                self._unpack_tar(destination, progress_callback)
            else:
                self._unpack_zip(destination, progress_callback)
        except ArchiveError:
            raise
        except Exception as e:
            raise ArchiveError(f"Failed to extract {self.path.name}: {e}") from e

    def _unpack_tar(self, destination: Path, progress_callback):
        with tarfile.open(self.path, "r:gz") as tar:
            for member in tar:
                validate_member_path(member.name, destination)
                # The "data" filter also rejects links pointing outside destination
                if sys.version_info >= (3, 12):
                    tar.extract(member, destination, filter="data")
                else:
                    tar.extract(member, destination)
                if progress_callback and member.isfile():
                    progress_callback(member.size)

    def _unpack_zip(self, destination: Path, progress_callback):
        with zipfile.ZipFile(self.path) as zf:
            for info in zf.infolist():
                validate_member_path(info.filename, destination)
                zf.extract(info, destination)
                if progress_callback and not info.is_dir():
                    progress_callback(info.file_size)
