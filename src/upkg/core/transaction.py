"""Compensating-action transactions for multi-step installs.

An install copies a payload, installs icons and writes a menu entry. Each
completed step registers an undo action here; if a later step fails, the
caller rolls back and the undo actions run newest first, returning the
filesystem to its pre-install state as far as possible.

Example:
    >>> tx = Transaction()
    >>> dest.write_bytes(payload)
    >>> tx.add(f"remove {dest}", lambda: remove_path(dest))
    >>> ...
    >>> tx.commit()  # or tx.rollback() on failure

"""

import shutil
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from upkg.exceptions import TransactionStateError
from upkg.logger import get_logger

logger = get_logger(__name__)

BACKUP_PREFIX = ".upkg-backup-"


class TransactionState(Enum):
    """Lifecycle states of a transaction."""

    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class CompensatingAction:
    """A named operation that undoes one earlier mutation."""

    description: str
    undo: Callable[[], None]


class Transaction:
    """Ordered stack of compensating actions owned by one install call."""

    def __init__(self) -> None:
        """Create an active transaction with no actions."""
        self._actions: list[CompensatingAction] = []
        self._cleanups: list[CompensatingAction] = []
        self._state = TransactionState.ACTIVE

    @property
    def state(self) -> TransactionState:
        """Current lifecycle state."""
        return self._state

    @property
    def actions(self) -> list[CompensatingAction]:
        """Registered actions in registration order (copy)."""
        return list(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def _require_active(self, operation: str) -> None:
        if self._state is not TransactionState.ACTIVE:
            msg = f"cannot {operation}: transaction is {self._state.value}"
            raise TransactionStateError(msg)

    def add(self, description: str, undo: Callable[[], None]) -> None:
        """Register a compensating action for a completed mutation.

        Raises:
            TransactionStateError: If the transaction is not active

        """
        self._require_active("add action")
        self._actions.append(CompensatingAction(description, undo))
        logger.debug("Transaction: registered '%s'", description)

    def add_cleanup(self, description: str, action: Callable[[], None]) -> None:
        """Register an action that runs once the transaction has finished.

        Cleanups run after ``commit()`` and after ``rollback()`` has run
        every undo action, e.g. to discard backups of replaced files.
        Their failures are logged only.

        Raises:
            TransactionStateError: If the transaction is not active

        """
        self._require_active("add cleanup")
        self._cleanups.append(CompensatingAction(description, action))

    def commit(self) -> None:
        """Finish successfully, discarding all actions.

        Raises:
            TransactionStateError: If the transaction is not active

        """
        self._require_active("commit")
        self._actions.clear()
        self._state = TransactionState.COMMITTED
        logger.debug("Transaction committed")
        self._run_cleanups()

    def _run_cleanups(self) -> None:
        cleanups, self._cleanups = self._cleanups, []
        for cleanup in cleanups:
            try:
                cleanup.undo()
            except Exception as e:
                logger.warning("Cleanup '%s' failed: %s", cleanup.description, e)

    def rollback(self) -> list[tuple[str, Exception]]:
        """Run every action once, newest first.

        A failing action is logged and collected; it never stops the
        remaining actions from running.

        Returns:
            (description, error) pairs for actions that failed

        Raises:
            TransactionStateError: If the transaction is not active

        """
        self._require_active("roll back")
        self._state = TransactionState.ROLLED_BACK

        failures: list[tuple[str, Exception]] = []
        actions, self._actions = self._actions, []
        if actions:
            logger.info("Rolling back %d change(s)", len(actions))

        for action in reversed(actions):
            try:
                action.undo()
                logger.debug("Rollback: %s", action.description)
            except Exception as e:
                logger.warning(
                    "Rollback step '%s' failed: %s", action.description, e
                )
                failures.append((action.description, e))

        self._run_cleanups()
        return failures


def remove_path(path: Path) -> None:
    """Remove a file, symlink or directory tree; absent paths are ignored.

    Used as the undo action for every filesystem object an install
    creates, so it tolerates the target having already disappeared.
    """
    if path.is_symlink() or path.is_file():
        path.unlink(missing_ok=True)
    elif path.is_dir():
        shutil.rmtree(path)


def register(tx: "Transaction | None", description: str, path: Path) -> None:
    """Register removal of ``path`` if a transaction is being tracked."""
    if tx is not None:
        tx.add(description, lambda: remove_path(path))


def _restore(backup: Path, path: Path) -> None:
    remove_path(path)
    backup.rename(path)


def set_aside(tx: "Transaction | None", path: Path) -> None:
    """Clear ``path`` so a replacement can be written in its place.

    The existing object is moved into a hidden directory next to it. A
    rollback of ``tx`` moves it back; once ``tx`` has finished the backup is
    discarded. Without a transaction the object is removed.

    Raises:
        OSError: If the object cannot be moved aside

    """
    if tx is None:
        remove_path(path)
        return
    holder = Path(tempfile.mkdtemp(prefix=BACKUP_PREFIX, dir=path.parent))
    tx.add_cleanup(f"discard backup of {path}", lambda: shutil.rmtree(holder))
    backup = holder / path.name
    path.rename(backup)
    tx.add(f"restore {path}", lambda: _restore(backup, path))
