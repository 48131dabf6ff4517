"""Standalone ELF executables."""

from pathlib import Path

from upkg.backends.base import BackendContext
from upkg.core.detection import is_appimage, is_elf, read_header
from upkg.domain.types import (
    PackageMetadata,
    PackageType,
    PayloadLayout,
    StagedPayload,
)


class BinaryStrategy:
    """Installs a plain executable as ``<bin_dir>/<name>``."""

    package_type = PackageType.BINARY

    def detect(self, path: Path) -> bool:
        """Claim ELF files that are not AppImages."""
        header = read_header(path)
        if header is None or not is_elf(header):
            return False
        return not is_appimage(path)

    async def extract_or_stage(
        self, source: Path, staging: Path, context: BackendContext
    ) -> StagedPayload:
        """Binaries are installed straight from the source file."""
        return StagedPayload(PayloadLayout.FILE, source, executable=source)

    def parse_metadata(self, payload: StagedPayload) -> PackageMetadata:
        """Binaries carry no metadata; the name comes from the file name."""
        return PackageMetadata()
