"""
File system utilities for toolpin.

This module provides the safe file operations the fetch pipeline and the
catalog rely on:
- Atomic writes (temp file + replace)
- Atomic directory installs (rename into a versioned path)
- Guarded recursive deletion
- Archive member path validation
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"


class FilesystemError(Exception):
    """Base exception for filesystem operations."""

    pass


class InsecureArchiveError(FilesystemError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check whether ``path`` is located under ``parent``.

    Args:
        path: Path to check
        parent: Candidate ancestor

    Returns:
        True if ``path`` equals or is inside ``parent``
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def ensure_containing_dir_exists(path: Union[str, Path]) -> Path:
    """
    Create the parent directory of ``path`` if it does not exist.

    Args:
        path: File path whose parent should exist

    Returns:
        The parent directory
    """
    parent = Path(path).parent
    parent.mkdir(parents=True, exist_ok=True)
    return parent


def validate_member_path(name: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Args:
        name: Member path from archive
        destination: Extraction destination

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / name).resolve()

    if not is_relative_to(member_path, destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{name}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    This ensures the file is never in a partially-written state.
    If the write fails, the original file (if any) remains unchanged.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)

    Example:
        >>> atomic_write('catalog.json', '{"version": 1}')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Temp file in same directory keeps the replace on one filesystem
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def make_staging_dir(parent: Path, prefix: str) -> Path:
    """
    Create a fresh, uniquely named directory under ``parent``.

    Two processes staging the same version never share a directory.

    Args:
        parent: Directory to create the staging directory in
        prefix: Name prefix (e.g., 'node-10.1.0-')

    Returns:
        Path to the new empty directory
    """
    parent.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(dir=parent, prefix=prefix))


def install_directory(source: Path, destination: Path) -> None:
    """
    Atomically move an unpacked directory into its final location.

    Uses a single ``os.rename``, which never leaves a partially populated
    ``destination``: either the whole tree appears there or nothing does.
    ``source`` and ``destination`` must be on the same filesystem.

    Args:
        source: Fully populated directory
        destination: Final path; must not exist

    Raises:
        OSError: If the rename fails (destination occupied, cross-device, ...)
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Renaming {source} -> {destination}")
    os.rename(source, destination)


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree('/home/user/.toolpin/tmp/node-abc', require_prefix='/home/user/.toolpin')
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not is_relative_to(path, require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        if IS_WINDOWS:

            def handle_remove_readonly(func, target, exc):
                """Error handler for Windows read-only files."""
                if not os.access(target, os.W_OK):
                    os.chmod(target, 0o777)
                    func(target)
                else:
                    raise

            shutil.rmtree(path, onerror=handle_remove_readonly)
        else:
            shutil.rmtree(path)

    except Exception as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e
