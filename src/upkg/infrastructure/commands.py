"""External command execution.

Backends never spawn processes directly; they receive a CommandRunner so
tests can substitute a fake. Every call is bounded by a timeout and a
cancelled caller kills the child instead of orphaning it.
"""

import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from upkg.exceptions import CommandError
from upkg.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True)
class CommandResult:
    """Exit status and decoded output of a finished command."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        """True when the command exited with status 0."""
        return self.returncode == 0


class CommandRunner(Protocol):
    """Capability to run external tools."""

    async def run(
        self,
        name: str,
        *args: str,
        cwd: Path | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> CommandResult:
        """Run ``name`` with ``args`` and wait for it to exit."""
        ...

    def exists(self, name: str) -> bool:
        """Return True if ``name`` can be executed."""
        ...


class SubprocessRunner:
    """CommandRunner backed by asyncio subprocesses."""

    def exists(self, name: str) -> bool:
        """Return True if ``name`` is an executable path or on PATH."""
        return shutil.which(name) is not None

    async def run(
        self,
        name: str,
        *args: str,
        cwd: Path | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> CommandResult:
        """Run a command and capture its output.

        A non-zero exit status is returned in the result, not raised.

        Args:
            name: Executable name or path
            *args: Command arguments
            cwd: Working directory for the child
            timeout: Seconds before the child is killed

        Returns:
            CommandResult with exit status and decoded output

        Raises:
            CommandError: If the command cannot be started or times out

        """
        logger.debug("Running: %s %s", name, " ".join(args))
        try:
            process = await asyncio.create_subprocess_exec(
                name,
                *args,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            msg = f"cannot start command: {e}"
            raise CommandError(msg, name) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=timeout
            )
        except TimeoutError as e:
            await self._kill(process)
            msg = f"timed out after {timeout:g}s"
            raise CommandError(msg, name) from e
        except asyncio.CancelledError:
            await self._kill(process)
            raise

        return CommandResult(
            returncode=process.returncode or 0,
            stdout=stdout.decode("utf-8", errors="ignore") if stdout else "",
            stderr=stderr.decode("utf-8", errors="ignore") if stderr else "",
        )

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()
