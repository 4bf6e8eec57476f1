"""
Cross-process locking for toolpin.

Two toolpin processes may run at once (for example a shell hook and a
project script). Each (kind, version) install target is guarded with a file
lock so that only one of them downloads, unpacks and renames it. The catalog
holds its own lock (see toolpin.catalog).

Usage:
    from toolpin.core.locking import LockManager

    locks = LockManager(layout.lock_dir)
    with locks.install_lock("node", "10.1.0"):
        # unpack and rename into versions/node/10.1.0
        pass
"""

import logging
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout as LockTimeout

logger = logging.getLogger(__name__)


class LockManager:
    """
    Manages lock files for toolpin resources.

    Uses the `filelock` library, which releases locks automatically when the
    holding process dies.

    Attributes:
        lock_dir: Directory where lock files are stored
    """

    def __init__(self, lock_dir: Path):
        self.lock_dir = Path(lock_dir)

    def _acquire(self, lock_path: Path, timeout: float, what: str):
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        lock = FileLock(lock_path, timeout=timeout)
        try:
            lock.acquire()
        except LockTimeout:
            logger.error(
                f"Could not acquire {what} lock after {timeout}s. "
                "Another toolpin process may be running."
            )
            raise
        logger.debug(f"Acquired {what} lock: {lock_path}")
        return lock

    @contextmanager
    def install_lock(self, kind: str, version: str, timeout: float = 600):
        """
        Acquire the lock for installing one version of one toolchain kind.

        Serializes download, unpack and rename of the same version across
        processes. Different versions never contend.

        Args:
            kind: Toolchain kind name ('node', 'yarn')
            version: Version string
            timeout: Maximum wait time in seconds (default: 600 for slow downloads)

        Raises:
            LockTimeout: If lock can't be acquired within timeout
        """
        safe_id = f"{kind}-{version}".replace("/", "-").replace("\\", "-")
        lock = self._acquire(
            self.lock_dir / f"install-{safe_id}.lock", timeout, f"{kind} v{version}"
        )
        try:
            yield
        finally:
            lock.release()
            logger.debug(f"Released install lock for {kind} v{version}")
