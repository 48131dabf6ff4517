"""Tests for the remove service."""

import logging
from pathlib import Path

import pytest

from tests.conftest import build_elf
from upkg.backends import BackendRegistry
from upkg.backends.base import BackendContext
from upkg.config.records import InstallRecordStore
from upkg.core.services.install_service import InstallService
from upkg.core.services.remove_service import RemoveService
from upkg.domain.types import InstallRecord, PackageType
from upkg.exceptions import PackageNotFoundError


@pytest.fixture
def store(context: BackendContext) -> InstallRecordStore:
    """Provide the record store under the test home."""
    return InstallRecordStore(context.paths.records_dir)


@pytest.fixture
def registry(context: BackendContext) -> BackendRegistry:
    """Provide the default backend registry."""
    return BackendRegistry.create_default(context)


@pytest.mark.asyncio
async def test_remove_installed_package(
    registry: BackendRegistry, store: InstallRecordStore, tmp_path: Path
) -> None:
    """Test artifacts and record are removed."""
    record = await InstallService(registry, store).install(
        build_elf(tmp_path / "tool")
    )

    report = await RemoveService(registry, store).remove("Tool")

    assert report.ok
    assert report.install_id == "tool"
    assert not Path(record.install_path).exists()
    assert not Path(record.desktop_files[0]).exists()
    assert store.get("tool") is None


@pytest.mark.asyncio
async def test_remove_not_installed(
    registry: BackendRegistry, store: InstallRecordStore
) -> None:
    """Test removing an unknown name reports it as not installed."""
    with pytest.raises(PackageNotFoundError, match="not installed"):
        await RemoveService(registry, store).remove("ghost")


@pytest.mark.asyncio
async def test_failed_removal_keeps_record(
    registry: BackendRegistry,
    store: InstallRecordStore,
    tmp_path: Path,
    caplog,
) -> None:
    """Test a record pointing outside managed directories is kept."""
    foreign = tmp_path / "foreign"
    foreign.write_text("keep")
    store.save(
        InstallRecord(
            install_id="odd",
            package_type=PackageType.BINARY,
            name="Odd",
            install_path=str(foreign),
            original_file=str(foreign),
        )
    )

    with caplog.at_level(logging.WARNING):
        report = await RemoveService(registry, store).remove("odd")

    assert not report.ok
    assert foreign.read_text() == "keep"
    assert store.exists("odd")
    assert "Keeping record for odd" in caplog.text


def test_find_by_display_name(
    registry: BackendRegistry, store: InstallRecordStore
) -> None:
    """Test a record is found by its name when the id does not match."""
    store.save(
        InstallRecord(
            install_id="obsidian",
            package_type=PackageType.APPIMAGE,
            name="Obsidian Notes",
            install_path="/bin/obsidian.appimage",
            original_file="/tmp/Obsidian.AppImage",
        )
    )
    service = RemoveService(registry, store)

    assert service.find("obsidian").install_id == "obsidian"
    assert service.find("OBSIDIAN notes").install_id == "obsidian"
    with pytest.raises(PackageNotFoundError):
        service.find("notes")
