"""Tests for the subprocess-backed command runner."""

import asyncio
import os
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from upkg.exceptions import CommandError
from upkg.infrastructure.commands import CommandResult, SubprocessRunner

CREATE_EXEC = "upkg.infrastructure.commands.asyncio.create_subprocess_exec"


def _process(returncode: int = 0, stdout: bytes = b"", stderr: bytes = b""):
    process = MagicMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    process.wait = AsyncMock(return_value=returncode)
    return process


def test_command_result_ok() -> None:
    """Test only exit status 0 counts as success."""
    assert CommandResult(0, "", "").ok
    assert not CommandResult(1, "", "").ok


def test_exists_uses_path_lookup() -> None:
    """Test tool lookup goes through shutil.which."""
    with patch(
        "upkg.infrastructure.commands.shutil.which", side_effect=[None, "/bin/x"]
    ):
        runner = SubprocessRunner()
        assert not runner.exists("missing-tool")
        assert runner.exists("x")


@pytest.mark.asyncio
async def test_run_captures_output(tmp_path: Path) -> None:
    """Test output is decoded and non-zero exits are returned."""
    process = _process(3, b"out\n", b"err\n")
    with patch(CREATE_EXEC, AsyncMock(return_value=process)) as create:
        result = await SubprocessRunner().run("tool", "-a", cwd=tmp_path)

    assert result == CommandResult(3, "out\n", "err\n")
    args, kwargs = create.call_args
    assert args == ("tool", "-a")
    assert kwargs["cwd"] == tmp_path


@pytest.mark.asyncio
async def test_start_failure_raises_command_error() -> None:
    """Test a missing executable becomes CommandError."""
    with patch(CREATE_EXEC, AsyncMock(side_effect=FileNotFoundError("nope"))):
        with pytest.raises(CommandError, match="cannot start"):
            await SubprocessRunner().run("missing")


@pytest.mark.asyncio
async def test_timeout_kills_process() -> None:
    """Test a timed out child is killed and reported."""
    process = _process()
    process.returncode = None
    process.communicate = AsyncMock(side_effect=TimeoutError)
    with patch(CREATE_EXEC, AsyncMock(return_value=process)):
        with pytest.raises(CommandError, match="timed out after 5s"):
            await SubprocessRunner().run("slow", timeout=5)

    process.kill.assert_called_once()
    process.wait.assert_awaited_once()


@pytest.mark.asyncio
async def test_cancel_kills_process(tmp_path: Path) -> None:
    """Test cancelling the caller kills and reaps the running child."""
    pid_file = tmp_path / "pid"
    task = asyncio.create_task(
        SubprocessRunner().run(
            "sh", "-c", f"echo $$ > {pid_file}; exec sleep 30", timeout=60
        )
    )
    for _ in range(200):
        if pid_file.is_file() and pid_file.read_text().strip():
            break
        await asyncio.sleep(0.01)
    pid = int(pid_file.read_text())

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)
