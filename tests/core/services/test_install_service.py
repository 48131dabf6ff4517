"""Tests for the install service."""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from tests.conftest import (
    ELF_HEADER,
    FakeRunner,
    build_appimage,
    build_elf,
    fake_self_extract,
)
from upkg.backends.base import BackendContext
from upkg.config.records import InstallRecordStore
from upkg.core.services.install_service import (
    InstallService,
    log_reinstall,
    stale_artifacts,
)
from upkg.domain.types import (
    InstallOptions,
    InstallRecord,
    PackageType,
    RecordMetadata,
)
from upkg.exceptions import (
    AlreadyInstalledError,
    IntegrationError,
    RecordStoreError,
)


@pytest.fixture
def service(context: BackendContext) -> InstallService:
    """Create the install service on the test context."""
    return InstallService.create_default(context)


@pytest.fixture
def downloads(tmp_path: Path) -> Path:
    """Provide a directory for package files."""
    path = tmp_path / "downloads"
    path.mkdir()
    return path


def _record(install_id: str, **kwargs) -> InstallRecord:
    defaults = {
        "package_type": PackageType.BINARY,
        "name": install_id,
        "install_path": f"/bin/{install_id}",
        "original_file": f"/tmp/{install_id}",
    }
    defaults.update(kwargs)
    return InstallRecord(install_id=install_id, **defaults)


class TestInstall:
    """Test cases for InstallService.install."""

    @pytest.mark.asyncio
    async def test_install_saves_record(
        self, service: InstallService, downloads: Path, context: BackendContext
    ) -> None:
        """Test a successful install is recorded."""
        source = build_elf(downloads / "tool-1.0")

        record = await service.install(source)

        saved = service.store.get("tool")
        assert saved is not None
        assert saved.to_dict() == record.to_dict()
        assert Path(record.install_path).is_file()
        assert (context.paths.records_dir / "tool.json").is_file()

    @pytest.mark.asyncio
    async def test_failure_rolls_back_everything(
        self, service: InstallService, downloads: Path, context: BackendContext
    ) -> None:
        """Test a failing desktop step removes the copied binary."""
        source = build_elf(downloads / "tool")
        context.paths.applications_dir.parent.mkdir(parents=True)
        context.paths.applications_dir.write_text("blocker")

        with pytest.raises(IntegrationError):
            await service.install(source)

        assert not (context.paths.bin_dir / "tool").exists()
        assert service.store.get("tool") is None

    @pytest.mark.asyncio
    async def test_record_failure_rolls_back(
        self, service: InstallService, downloads: Path, context: BackendContext
    ) -> None:
        """Test a record that cannot be saved undoes the install."""
        source = build_elf(downloads / "tool")

        with (
            patch.object(
                service.store,
                "save",
                side_effect=RecordStoreError("disk full", "tool"),
            ),
            pytest.raises(RecordStoreError),
        ):
            await service.install(source)

        assert not (context.paths.bin_dir / "tool").exists()
        assert not (context.paths.applications_dir / "tool.desktop").exists()

    @pytest.mark.asyncio
    async def test_recorded_id_without_force(
        self, service: InstallService, downloads: Path, context: BackendContext
    ) -> None:
        """Test an existing record blocks the install and is kept."""
        source = build_elf(downloads / "tool")
        await service.install(source)
        # Files gone but the record remains
        (context.paths.bin_dir / "tool").unlink()
        (context.paths.applications_dir / "tool.desktop").unlink()

        with pytest.raises(AlreadyInstalledError, match="already installed"):
            await service.install(source)

        assert not (context.paths.bin_dir / "tool").exists()
        assert service.store.exists("tool")

    @pytest.mark.asyncio
    async def test_custom_name_checked_before_detection(
        self, service: InstallService, tmp_path: Path
    ) -> None:
        """Test a recorded custom name fails before the file is read."""
        service.store.save(_record("customapp"))

        with pytest.raises(AlreadyInstalledError):
            await service.install(
                tmp_path / "missing", InstallOptions(custom_name="CustomApp")
            )

    @pytest.mark.asyncio
    async def test_force_reinstall_changes_format(
        self,
        service: InstallService,
        downloads: Path,
        fake_runner: FakeRunner,
        context: BackendContext,
        caplog,
    ) -> None:
        """Test a forced reinstall in another format removes old artifacts."""
        fake_runner.on(
            "package.appimage", fake_self_extract({"AppRun": b"#!/bin/sh\n"})
        )
        old = await service.install(build_appimage(downloads / "tool-1.0.AppImage"))
        assert old.install_path.endswith("tool.appimage")

        with caplog.at_level(logging.INFO):
            new = await service.install(
                build_elf(downloads / "tool-2.0"), InstallOptions(force=True)
            )

        assert new.package_type is PackageType.BINARY
        assert not Path(old.install_path).exists()
        assert Path(new.install_path).is_file()
        assert Path(new.desktop_files[0]).is_file()
        saved = service.store.get("tool")
        assert saved is not None
        assert saved.version == "2.0"
        assert "Upgraded tool: 1.0 -> 2.0" in caplog.text

    @pytest.mark.asyncio
    async def test_failed_force_reinstall_restores_old_install(
        self, service: InstallService, downloads: Path, context: BackendContext
    ) -> None:
        """Test a failed forced reinstall puts the replaced files back."""
        old = await service.install(build_elf(downloads / "tool", size=100))
        binary = Path(old.install_path)
        desktop = Path(old.desktop_files[0])
        old_bytes = binary.read_bytes()
        old_entry = desktop.read_text()

        with (
            patch(
                "upkg.backends.engine.write_desktop_file",
                side_effect=OSError("disk full"),
            ),
            pytest.raises(IntegrationError),
        ):
            await service.install(
                build_elf(downloads / "tool2", size=200),
                InstallOptions(custom_name="tool", force=True),
            )

        saved = service.store.get("tool")
        assert saved is not None
        assert saved.to_dict() == old.to_dict()
        assert binary.read_bytes() == old_bytes
        assert desktop.read_text() == old_entry
        assert sorted(p.name for p in context.paths.bin_dir.iterdir()) == ["tool"]
        assert sorted(p.name for p in desktop.parent.iterdir()) == ["tool.desktop"]

    @pytest.mark.asyncio
    async def test_force_reinstall_discards_backups(
        self, service: InstallService, downloads: Path, context: BackendContext
    ) -> None:
        """Test a successful forced reinstall leaves no moved-aside copies."""
        await service.install(build_elf(downloads / "tool", size=100))

        new = await service.install(
            build_elf(downloads / "tool2", size=200),
            InstallOptions(custom_name="tool", force=True),
        )

        assert Path(new.install_path).stat().st_size == len(ELF_HEADER) + 200
        assert sorted(p.name for p in context.paths.bin_dir.iterdir()) == ["tool"]
        assert sorted(
            p.name for p in context.paths.applications_dir.iterdir()
        ) == ["tool.desktop"]


class TestStaleArtifacts:
    """Test cases for stale_artifacts."""

    def test_reused_paths_are_dropped(self) -> None:
        """Test only artifacts absent from the new record remain."""
        old = _record(
            "app",
            install_path="/bin/app.appimage",
            desktop_files=["/apps/app.desktop"],
            metadata=RecordMetadata(
                icon_files=["/icons/48/app.png", "/icons/256/app.png"]
            ),
        )
        new = _record(
            "app",
            package_type=PackageType.TARBALL,
            install_path="/opt/app",
            desktop_files=["/apps/app.desktop"],
            metadata=RecordMetadata(
                icon_files=["/icons/48/app.png"], wrapper_script="/bin/app"
            ),
        )

        stale = stale_artifacts(old, new)

        assert stale.install_path == "/bin/app.appimage"
        assert stale.desktop_files == []
        assert stale.metadata.icon_files == ["/icons/256/app.png"]
        assert stale.metadata.wrapper_script is None
        # The original record is left untouched
        assert old.desktop_files == ["/apps/app.desktop"]

    def test_same_layout_leaves_nothing(self) -> None:
        """Test reinstalling the same layout has no stale artifacts."""
        old = _record("app", desktop_files=["/apps/app.desktop"])

        stale = stale_artifacts(old, old)

        assert stale.install_path == ""
        assert stale.desktop_files == []


@pytest.mark.parametrize(
    ("old_version", "new_version", "expected"),
    [
        ("1.0", "2.0", "Upgraded app: 1.0 -> 2.0"),
        ("2.0", "1.5", "Downgraded app: 2.0 -> 1.5"),
        ("2.0", "2.0", "Reinstalled app 2.0"),
        (None, "2.0", "Reinstalled app"),
    ],
)
def test_log_reinstall(
    caplog, old_version: str | None, new_version: str, expected: str
) -> None:
    """Test version changes are described in the log."""
    with caplog.at_level(logging.INFO):
        log_reinstall(
            _record("app", version=old_version), _record("app", version=new_version)
        )

    assert expected in caplog.text


def test_create_default_uses_records_dir(context: BackendContext) -> None:
    """Test the default store lives in the records directory."""
    service = InstallService.create_default(context)

    assert isinstance(service.store, InstallRecordStore)
    assert service.store.records_dir == context.paths.records_dir
