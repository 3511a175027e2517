"""
Concurrent access control for the anvs installer.

Two installer runs (for example two shells bootstrapping at once) must not
mutate the version store or a shell profile at the same time. A single
advisory lock file serializes every mutating step.

Features:
- OS-level advisory locking through the `filelock` library
- Re-entrant within one LockManager (nested steps share the lock)
- Timeout support to prevent hanging

Usage:
    from anvs_installer.core.locking import LockManager

    lock_manager = LockManager(Path.home() / ".anvs.lock")
    with lock_manager.exclusive(timeout=60):
        # Safely modify the store and profiles
        pass
"""

import logging
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout

from .exceptions import LockTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 60


class LockManager:
    """
    Owns the installer's exclusive lock.

    The same FileLock instance is reused for every acquisition, so nested
    `exclusive()` blocks in one process only bump filelock's counter instead
    of deadlocking against themselves.

    Attributes:
        lock_path: Path of the lock file
    """

    def __init__(self, lock_path: Path):
        """
        Initialize lock manager.

        Args:
            lock_path: Lock file path; its parent directory is created
        """
        self.lock_path = Path(lock_path)
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = FileLock(str(self.lock_path))

    @property
    def is_locked(self) -> bool:
        """True while this process holds the lock."""
        return self._lock.is_locked

    @contextmanager
    def exclusive(self, timeout: float = DEFAULT_LOCK_TIMEOUT):
        """
        Hold the installer lock for the duration of the block.

        Args:
            timeout: Maximum wait time in seconds

        Raises:
            LockTimeoutError: If lock can't be acquired within timeout
        """
        try:
            self._lock.acquire(timeout=timeout)
        except Timeout as e:
            logger.error(
                f"Could not acquire installer lock after {timeout}s. "
                "Another anvs installer may be running."
            )
            raise LockTimeoutError(
                f"Could not acquire installer lock {self.lock_path} after {timeout}s. "
                "Another anvs installer may be running."
            ) from e

        logger.debug(f"Acquired installer lock: {self.lock_path}")
        try:
            yield
        finally:
            self._lock.release()
            logger.debug(f"Released installer lock: {self.lock_path}")

    def discard(self) -> None:
        """Remove the lock file once nobody in this process holds it."""
        if self._lock.is_locked:
            return
        try:
            self.lock_path.unlink(missing_ok=True)
        except OSError as e:
            logger.debug(f"Could not remove lock {self.lock_path}: {e}")


__all__ = ["LockManager", "DEFAULT_LOCK_TIMEOUT"]
