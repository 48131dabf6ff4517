"""Process-level locking using fcntl.flock.

upkg takes no locks of its own while installing; the CLI holds this lock
for the whole command so two invocations never touch the bin,
applications and icon directories at the same time.
"""

from __future__ import annotations

import asyncio
import fcntl
from typing import IO, TYPE_CHECKING, Self

from upkg.exceptions import LockError

if TYPE_CHECKING:
    import types
    from pathlib import Path


class LockManager:
    """Async context manager holding an exclusive, non-blocking file lock.

    Example:
        >>> async with LockManager(Path("~/.config/upkg/upkg.lock")):
        ...     await service.install(path, options)

    """

    def __init__(self, lock_path: Path) -> None:
        """Initialize LockManager with lock file path.

        Args:
            lock_path: Path to the lock file to be created/used.

        """
        self._lock_path = lock_path
        self._lock_file: IO[str] | None = None

    @property
    def locked(self) -> bool:
        """True while the lock is held."""
        return self._lock_file is not None

    def _acquire(self) -> None:
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock_file = None
        try:
            lock_file = self._lock_path.open("w", encoding="utf-8")
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            if lock_file is not None:
                lock_file.close()
            msg = "Another upkg instance is already running"
            raise LockError(msg, cause=e) from e
        except OSError as e:
            if lock_file is not None:
                lock_file.close()
            msg = f"Failed to acquire lock: {e}"
            raise LockError(msg, cause=e) from e
        self._lock_file = lock_file

    async def __aenter__(self) -> Self:
        """Acquire the lock.

        Raises:
            LockError: If another process holds the lock or the lock file
                cannot be opened.

        """
        await asyncio.get_running_loop().run_in_executor(None, self._acquire)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        """Release the lock; safe if it was never acquired."""
        if self._lock_file is not None:
            lock_file, self._lock_file = self._lock_file, None
            await asyncio.get_running_loop().run_in_executor(
                None, lock_file.close
            )
