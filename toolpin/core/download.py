"""
Network download manager with progress tracking and checksum verification.

This module provides single-attempt streaming downloads:
- HTTP/HTTPS downloads with TLS verification
- Progress reporting (bytes, percentage, speed, ETA)
- Truncation detection against the declared Content-Length
- Optional SHA-256 verification during download
- Writes land in a ``.partial`` sibling and replace the destination only
  once complete, so an interrupted transfer never looks like a finished one

Retrying is left to the caller.
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests
from requests.exceptions import RequestException

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second
    eta_seconds: float  # estimated time remaining


class DownloadError(Exception):
    """Exception raised when download fails."""

    pass


class ChecksumError(DownloadError):
    """Exception raised when checksum verification fails."""

    pass


class StreamingHasher:
    """Compute a SHA-256 digest incrementally for streaming downloads."""

    def __init__(self):
        self.hasher = hashlib.sha256()

    def update(self, data: bytes):
        """Add data to hash computation."""
        self.hasher.update(data)

    def finalize(self) -> str:
        """Get final hash value as hex string."""
        return self.hasher.hexdigest()

    def verify(self, expected_hash: str) -> bool:
        """Check if computed hash matches expected value (case-insensitive)."""
        return self.finalize().lower() == expected_hash.lower()


def partial_path(destination: Path) -> Path:
    """Path used while a download to ``destination`` is in flight."""
    return destination.with_name(destination.name + ".partial")


def download_file(
    url: str,
    destination: Path,
    expected_sha256: Optional[str] = None,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    timeout: int = 30,
) -> Path:
    """
    Download file from URL to destination in a single attempt.

    Args:
        url: URL to download from
        destination: Local path to save file
        expected_sha256: Expected SHA256 hash (verified during download)
        progress_callback: Optional callback for progress updates
        timeout: Connect/read timeout in seconds

    Returns:
        Path to downloaded file

    Raises:
        DownloadError: If the request fails, the server answers with an
            error status, or the body is shorter than declared
        ChecksumError: If checksum doesn't match expected value
        ValueError: If URL or destination is invalid

    Example:
        >>> download_file(
        ...     "https://nodejs.org/dist/v10.1.0/node-v10.1.0-linux-x64.tar.gz",
        ...     Path("cache/node/node-v10.1.0-linux-x64.tar.gz"),
        ... )
    """
    if not url:
        raise ValueError("URL cannot be empty")

    if not destination:
        raise ValueError("Destination path cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    staging = partial_path(destination)

    logger.info(f"Downloading from {url}")

    try:
        _download_with_progress(
            url=url,
            staging=staging,
            expected_sha256=expected_sha256,
            progress_callback=progress_callback,
            timeout=timeout,
        )
    except RequestException as e:
        staging.unlink(missing_ok=True)
        raise DownloadError(f"Download of {url} failed: {e}") from e
    except DownloadError:
        staging.unlink(missing_ok=True)
        raise
    except OSError as e:
        staging.unlink(missing_ok=True)
        raise DownloadError(f"Could not write {destination}: {e}") from e

    staging.replace(destination)
    logger.info(f"Download complete: {destination}")
    return destination


def _download_with_progress(
    url: str,
    staging: Path,
    expected_sha256: Optional[str],
    progress_callback: Optional[Callable[[DownloadProgress], None]],
    timeout: int,
) -> None:
    """
    Stream ``url`` into ``staging`` and validate what arrived.

    This is an internal function called by download_file().
    """
    hasher = StreamingHasher() if expected_sha256 else None

    with requests.get(url, stream=True, timeout=timeout, allow_redirects=True) as response:
        response.raise_for_status()

        content_length = response.headers.get("content-length")
        total_size = int(content_length) if content_length else 0

        downloaded = 0
        start_time = time.time()
        last_progress_time = 0.0

        with open(staging, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue

                f.write(chunk)
                downloaded += len(chunk)
                if hasher:
                    hasher.update(chunk)

                # Report progress at most twice a second, plus the final chunk
                current_time = time.time()
                if progress_callback and (
                    current_time - last_progress_time >= 0.5
                    or downloaded == total_size
                ):
                    elapsed = current_time - start_time
                    speed = downloaded / elapsed if elapsed > 0 else 0
                    remaining = total_size - downloaded if total_size > 0 else 0
                    eta = remaining / speed if speed > 0 else 0

                    progress_callback(
                        DownloadProgress(
                            bytes_downloaded=downloaded,
                            total_bytes=total_size if total_size > 0 else downloaded,
                            percentage=(downloaded / total_size * 100)
                            if total_size > 0
                            else 0,
                            speed_bps=speed,
                            eta_seconds=eta,
                        )
                    )
                    last_progress_time = current_time

    if total_size and downloaded < total_size:
        raise DownloadError(
            f"Truncated download from {url}: received {downloaded} of {total_size} bytes"
        )

    if hasher and expected_sha256:
        if not hasher.verify(expected_sha256):
            raise ChecksumError(
                f"Checksum mismatch for {url}: "
                f"expected {expected_sha256}, got {hasher.finalize()}"
            )
        logger.info("Checksum verified successfully")


def fetch_text(url: str, timeout: int = 30) -> str:
    """
    GET a small text document.

    Raises:
        DownloadError: On any transport or HTTP error
    """
    logger.debug(f"GET {url}")
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except RequestException as e:
        raise DownloadError(f"Request to {url} failed: {e}") from e
    return response.text
