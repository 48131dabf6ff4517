"""Tests for CLIRunner command routing and exit codes."""

from pathlib import Path

import orjson
import pytest

from tests.conftest import build_elf
from upkg import __version__
from upkg.backends.base import BackendContext
from upkg.cli.runner import CLIRunner, exit_code_for
from upkg.config.paths import Paths
from upkg.core.locking import LockManager
from upkg.exceptions import (
    AlreadyInstalledError,
    ExtractionToolMissingError,
    InstallationError,
    IntegrationError,
    NameValidationError,
    PackageNotFoundError,
    RecordStoreError,
    SafetyViolationError,
    UnsupportedPackageError,
    UpkgError,
)


@pytest.fixture
def runner(context: BackendContext, monkeypatch, tmp_path: Path) -> CLIRunner:
    """Provide a runner on the test context with HOME under tmp_path."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return CLIRunner(context=context)


@pytest.fixture
def package(tmp_path: Path) -> Path:
    """Provide an installable binary."""
    return build_elf(tmp_path / "tool-1.2.0")


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (PackageNotFoundError("x"), 2),
        (UnsupportedPackageError("x"), 3),
        (NameValidationError("x"), 4),
        (AlreadyInstalledError("x"), 5),
        (ExtractionToolMissingError("x", tools=["zstd"]), 6),
        (SafetyViolationError("x"), 7),
        (IntegrationError("x"), 8),
        (InstallationError("x"), 1),
        (RecordStoreError("x"), 1),
        (UpkgError("x"), 1),
    ],
)
def test_exit_code_for(error: UpkgError, expected: int) -> None:
    """Test each error category maps to its exit code."""
    assert exit_code_for(error) == expected


@pytest.mark.asyncio
async def test_version(runner: CLIRunner, capsys) -> None:
    """Test --version prints the package version."""
    assert await runner.run(["--version"]) == 0
    assert capsys.readouterr().out.strip() == __version__


@pytest.mark.asyncio
async def test_no_command(runner: CLIRunner, capsys) -> None:
    """Test running without a command fails."""
    assert await runner.run([]) == 1
    assert "No command specified" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_install_list_info_uninstall(
    runner: CLIRunner, package: Path, capsys
) -> None:
    """Test a full package lifecycle through the CLI."""
    assert await runner.run(["install", str(package)]) == 0
    out = capsys.readouterr().out
    assert "✅ Installed Tool 1.2.0 (tool)" in out

    assert await runner.run(["list"]) == 0
    assert "tool  binary    1.2.0" in capsys.readouterr().out

    assert await runner.run(["info", "Tool"]) == 0
    out = capsys.readouterr().out
    assert "ID:" in out
    assert "Wayland:" in out

    assert await runner.run(["uninstall", "tool"]) == 0
    assert "✅ Uninstalled tool" in capsys.readouterr().out

    assert await runner.run(["list"]) == 0
    assert "No packages installed" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_install_errors_map_to_exit_codes(
    runner: CLIRunner, package: Path, tmp_path: Path, capsys
) -> None:
    """Test install failures print one line and return their category."""
    text = tmp_path / "notes.txt"
    text.write_text("hello")

    assert await runner.run(["install", str(tmp_path / "missing")]) == 2
    assert await runner.run(["install", str(text)]) == 3
    assert await runner.run(["install", str(package)]) == 0
    assert await runner.run(["install", str(package)]) == 5
    assert await runner.run(["install", str(package), "--force"]) == 0
    assert "❌" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_info_unknown_package(runner: CLIRunner, capsys) -> None:
    """Test info on a missing package returns the not-found code."""
    assert await runner.run(["info", "ghost"]) == 2
    assert "not installed" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_uninstall_continues_after_unknown_name(
    runner: CLIRunner, package: Path, capsys
) -> None:
    """Test every name is processed even when one is unknown."""
    await runner.run(["install", str(package)])

    assert await runner.run(["uninstall", "ghost", "tool"]) == 2
    out = capsys.readouterr().out
    assert "not installed" in out
    assert "✅ Uninstalled tool" in out


@pytest.mark.asyncio
async def test_mutating_command_needs_lock(
    runner: CLIRunner, package: Path, capsys
) -> None:
    """Test install refuses to run while another instance holds the lock."""
    async with LockManager(Paths.lock_file()):
        code = await runner.run(["install", str(package)])

    assert code == 1
    assert "Another upkg instance is already running" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_read_only_command_ignores_lock(runner: CLIRunner) -> None:
    """Test list works while the lock is held."""
    async with LockManager(Paths.lock_file()):
        assert await runner.run(["list"]) == 0


@pytest.mark.asyncio
async def test_uninstall_dry_run_keeps_files(
    runner: CLIRunner, package: Path, context: BackendContext, capsys
) -> None:
    """Test a dry run lists the artifacts and removes nothing."""
    await runner.run(["install", str(package)])
    capsys.readouterr()

    assert await runner.run(["uninstall", "Tool", "--dry-run"]) == 0

    out = capsys.readouterr().out
    binary = context.paths.bin_dir / "tool"
    assert "Would uninstall Tool (tool, binary)" in out
    assert str(binary) in out
    assert "No changes were made" in out
    assert binary.is_file()


@pytest.mark.asyncio
async def test_uninstall_all(
    runner: CLIRunner, package: Path, tmp_path: Path, capsys
) -> None:
    """Test --all removes every recorded package."""
    await runner.run(["install", str(package)])
    await runner.run(["install", str(build_elf(tmp_path / "other-0.3"))])
    capsys.readouterr()

    assert await runner.run(["uninstall", "--all"]) == 0

    out = capsys.readouterr().out
    assert "✅ Uninstalled other" in out
    assert "✅ Uninstalled tool" in out
    assert await runner.run(["uninstall", "--all"]) == 0
    assert "No packages installed" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [["uninstall"], ["uninstall", "tool", "--all"]])
@pytest.mark.asyncio
async def test_uninstall_needs_names_or_all(
    runner: CLIRunner, argv: list[str], capsys
) -> None:
    """Test uninstall rejects neither or both of names and --all."""
    assert await runner.run(argv) == 1
    assert "❌" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_list_filters_and_json(
    runner: CLIRunner, package: Path, tmp_path: Path, capsys
) -> None:
    """Test list filtering by name and type, and JSON output."""
    await runner.run(["install", str(package)])
    await runner.run(["install", str(build_elf(tmp_path / "other-0.3"))])
    capsys.readouterr()

    assert await runner.run(["list", "--name", "OTH"]) == 0
    out = capsys.readouterr().out
    assert "other" in out
    assert "tool" not in out

    assert await runner.run(["list", "--type", "deb"]) == 0
    assert "No packages match" in capsys.readouterr().out

    assert await runner.run(["list", "--json", "--sort", "version"]) == 0
    data = orjson.loads(capsys.readouterr().out)
    assert [entry["install_id"] for entry in data] == ["other", "tool"]


@pytest.mark.asyncio
async def test_doctor_reports_missing_files(
    runner: CLIRunner, package: Path, context: BackendContext, capsys
) -> None:
    """Test doctor lists missing artifacts as warnings and exits 0."""
    await runner.run(["install", str(package)])
    (context.paths.bin_dir / "tool").unlink()
    capsys.readouterr()

    assert await runner.run(["doctor"]) == 0

    out = capsys.readouterr().out
    assert "unsquashfs: not found" in out
    assert f"missing: {context.paths.bin_dir / 'tool'}" in out
    assert "warning(s)" in out


@pytest.mark.asyncio
async def test_doctor_fails_on_blocked_directory(
    runner: CLIRunner, context: BackendContext, capsys
) -> None:
    """Test a file where an install directory belongs is an issue."""
    context.paths.bin_dir.parent.mkdir(parents=True)
    context.paths.bin_dir.write_text("not a directory")

    assert await runner.run(["doctor"]) == 1
    assert "not a directory" in capsys.readouterr().out
