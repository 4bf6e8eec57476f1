"""
Hash verification for downloaded archives.

Provides SHA-256 computation for files on disk and parsing of published
checksum listings (SHASUMS256.txt format).
"""

import hashlib
import hmac
import logging
import re
from pathlib import Path
from typing import Dict

logger = logging.getLogger(__name__)

SHA256_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")


def is_sha256(value: str) -> bool:
    """Return True if ``value`` looks like a hex SHA-256 digest."""
    return bool(SHA256_PATTERN.match(value))


def compute_file_hash(file_path: Path, algorithm: str = "sha256") -> str:
    """
    Compute cryptographic hash of file.

    Args:
        file_path: Path to file
        algorithm: Hash algorithm name understood by hashlib

    Returns:
        Hex string of hash

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    hasher = hashlib.new(algorithm)
    with open(file_path, "rb") as f:
        while chunk := f.read(65536):
            hasher.update(chunk)
    return hasher.hexdigest()


def verify_file_hash(file_path: Path, expected: str) -> bool:
    """
    Verify a file against an expected SHA-256 digest.

    Comparison is case-insensitive and constant-time.
    """
    actual = compute_file_hash(file_path, "sha256")
    return hmac.compare_digest(actual.lower(), expected.lower())


def parse_hash_text(text: str, source: str = "checksums") -> Dict[str, str]:
    """
    Parse a checksum listing.

    Supports formats:
    - hash  filename
    - hash *filename

    Args:
        text: Listing contents
        source: Name used in log messages

    Returns:
        Dict of filename -> hash

    Example:
        >>> parse_hash_text("abc...  node-v10.1.0-linux-x64.tar.gz\\n")
        {'node-v10.1.0-linux-x64.tar.gz': 'abc...'}
    """
    hashes = {}

    for line_num, line in enumerate(text.splitlines(), 1):
        line = line.strip()

        if not line or line.startswith("#"):
            continue

        parts = line.split(maxsplit=1)
        if len(parts) != 2:
            logger.warning(f"Skipping invalid line {line_num} in {source}: {line}")
            continue

        hash_value, filename = parts[0].strip(), parts[1].strip()

        # Leading asterisk is the binary mode indicator
        if filename.startswith("*"):
            filename = filename[1:].strip()

        if "/" in filename or "\\" in filename or ".." in filename:
            logger.warning(f"Skipping suspicious filename at line {line_num}: {filename}")
            continue

        hashes[filename] = hash_value

    return hashes
