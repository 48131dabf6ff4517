"""Tests for the standalone binary backend."""

from pathlib import Path

import pytest

from tests.conftest import build_appimage, build_elf
from upkg.backends.base import BackendContext
from upkg.backends.binary import BinaryStrategy
from upkg.backends.engine import Backend
from upkg.domain.types import InstallOptions, PayloadLayout


class TestBinaryStrategy:
    """Test cases for BinaryStrategy."""

    def test_detect(self, tmp_path: Path) -> None:
        """Test only non-AppImage ELF files are claimed."""
        strategy = BinaryStrategy()
        script = tmp_path / "run.sh"
        script.write_text("#!/bin/sh\necho hi\n")

        assert strategy.detect(build_elf(tmp_path / "tool"))
        assert not strategy.detect(build_appimage(tmp_path / "app.AppImage"))
        assert not strategy.detect(script)
        assert not strategy.detect(tmp_path / "missing")

    @pytest.mark.asyncio
    async def test_stage_uses_source(
        self, tmp_path: Path, context: BackendContext
    ) -> None:
        """Test binaries are not copied or extracted while staging."""
        source = build_elf(tmp_path / "tool")
        staging = tmp_path / "staging"
        staging.mkdir()

        payload = await BinaryStrategy().extract_or_stage(source, staging, context)

        assert payload.layout is PayloadLayout.FILE
        assert payload.executable == source
        assert payload.root is None
        assert list(staging.iterdir()) == []


@pytest.mark.asyncio
async def test_reinstall_with_force_keeps_single_entry(
    tmp_path: Path, context: BackendContext
) -> None:
    """Test a forced reinstall replaces, rather than duplicates, artifacts."""
    backend = Backend(BinaryStrategy(), context)
    source = build_elf(tmp_path / "tool")

    await backend.install(source)
    record = await backend.install(source, InstallOptions(force=True))

    assert [p.name for p in context.paths.bin_dir.iterdir()] == ["tool"]
    assert [p.name for p in context.paths.applications_dir.iterdir()] == [
        "tool.desktop"
    ]
    assert record.version is None
