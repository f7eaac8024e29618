"""Host-side locking around container id allocation.

Two deployments scanning for a free id at the same time could both pick the
same one. Holding this lock from the scan until pct create returns closes
that window for invocations on the same host.
"""
import fcntl
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from lxcdeploy.core.config import get_settings
from lxcdeploy.core.logger import get_logger
from lxcdeploy.errors import DeployError

logger = get_logger(__name__)


class LockError(DeployError):
    """Raised when unable to acquire the provisioning lock."""
    pass


class ProvisionLock:
    """File-based lock serializing id allocation and container creation."""

    def __init__(self, lock_file: Optional[Path] = None, timeout: int = 60):
        """Initialize lock.

        Args:
            lock_file: Path to lock file (default: from runtime settings)
            timeout: Seconds to wait for the lock (0 = fail immediately)
        """
        self.lock_file = Path(lock_file) if lock_file else Path(get_settings().lock_file)
        self.timeout = timeout
        self.lock_fd = None

    def acquire(self) -> bool:
        """Acquire the lock.

        Raises:
            LockError: If the lock is held past the timeout
        """
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)

        start_time = time.time()
        while True:
            self.lock_fd = open(self.lock_file, 'a+')
            try:
                fcntl.flock(self.lock_fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except OSError:
                self.lock_fd.close()
                self.lock_fd = None

                elapsed = time.time() - start_time
                if elapsed >= self.timeout:
                    lock_info = self._read_lock_info()
                    raise LockError(
                        f"Another deployment is allocating a container.\n"
                        f"Lock held by PID {lock_info['pid']} since {lock_info['time']}\n"
                        f"Wait for it to finish, or remove {self.lock_file} if stale."
                    )

                time.sleep(0.5)
                continue

            if not self._holds_current_file():
                # previous holder removed the file after we opened it
                self.lock_fd.close()
                self.lock_fd = None
                continue

            self.lock_fd.seek(0)
            self.lock_fd.truncate()
            self.lock_fd.write(f"{os.getpid()}\n")
            self.lock_fd.write(f"{time.strftime('%Y-%m-%d %H:%M:%S')}\n")
            self.lock_fd.flush()

            logger.debug(f"Acquired lock: {self.lock_file}")
            return True

    def _holds_current_file(self) -> bool:
        """True if the locked descriptor is still the file at ``lock_file``."""
        try:
            on_disk = os.stat(self.lock_file)
        except FileNotFoundError:
            return False
        held = os.fstat(self.lock_fd.fileno())
        return (held.st_dev, held.st_ino) == (on_disk.st_dev, on_disk.st_ino)

    def release(self):
        """Remove the lock file, then release the lock.

        A waiter that opened the removed file retries on a fresh one.
        """
        if self.lock_fd is None:
            return

        try:
            self.lock_file.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Error removing lock file: {e}")

        try:
            fcntl.flock(self.lock_fd.fileno(), fcntl.LOCK_UN)
            self.lock_fd.close()
            logger.debug(f"Released lock: {self.lock_file}")
        except OSError as e:
            logger.warning(f"Error releasing lock: {e}")
        finally:
            self.lock_fd = None

    def _read_lock_info(self) -> dict:
        """Read PID and timestamp of the current holder."""
        try:
            with open(self.lock_file) as f:
                lines = f.readlines()
                if len(lines) >= 2:
                    return {'pid': lines[0].strip(), 'time': lines[1].strip()}
        except OSError:
            pass

        return {'pid': 'unknown', 'time': 'unknown'}

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


@contextmanager
def provision_lock(timeout: int = 60, lock_file: Optional[Path] = None):
    """Context manager holding the provisioning lock.

    Usage:
        with provision_lock():
            vmid = allocate()
            create(vmid)

    Raises:
        LockError: If unable to acquire lock
    """
    lock = ProvisionLock(lock_file=lock_file, timeout=timeout)
    try:
        lock.acquire()
        yield lock
    finally:
        lock.release()
