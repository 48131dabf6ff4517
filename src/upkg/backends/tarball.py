"""Tar and zip archives holding a self-contained application tree."""

import asyncio
from pathlib import Path

from upkg.backends.base import BackendContext
from upkg.backends.desktop_metadata import (
    find_desktop_file,
    metadata_from_desktop_file,
)
from upkg.core.detection import (
    ArchiveFormat,
    Compression,
    detect_archive_format,
    detect_compression,
    read_header,
)
from upkg.core.extraction import zstd_chain
from upkg.domain.types import (
    PackageMetadata,
    PackageType,
    PayloadLayout,
    StagedPayload,
)
from upkg.infrastructure.archive import extract_tar, extract_zip
from upkg.logger import get_logger

logger = get_logger(__name__)

DESKTOP_SEARCH_DIRS = (
    ".",
    "share/applications",
    "usr/share/applications",
)


def single_top_level_dir(root: Path) -> Path:
    """Descend into the archive's only top-level directory, if any."""
    children = list(root.iterdir())
    if len(children) == 1 and children[0].is_dir() and not children[0].is_symlink():
        return children[0]
    return root


class TarballStrategy:
    """Installs an archive into ``<apps_dir>/<name>`` with a wrapper."""

    package_type = PackageType.TARBALL

    def detect(self, path: Path) -> bool:
        """Claim tar (plain or compressed) and zip archives."""
        header = read_header(path)
        return header is not None and detect_archive_format(header) is not None

    async def extract_or_stage(
        self, source: Path, staging: Path, context: BackendContext
    ) -> StagedPayload:
        """Extract the archive entry by entry into ``staging/root``.

        Raises:
            ExtractionError: If the archive cannot be read
            SafetyViolationError: If any entry fails validation or limits

        """
        header = read_header(source) or b""
        root = staging / "root"

        if detect_archive_format(header) is ArchiveFormat.ZIP:
            await asyncio.to_thread(extract_zip, source, root, context.limits)
        else:
            archive = source
            if detect_compression(header) is Compression.ZSTD:
                archive = await zstd_chain(context.runner).run(
                    source, staging / "payload.tar"
                )
            await asyncio.to_thread(extract_tar, archive, root, context.limits)

        return StagedPayload(
            PayloadLayout.TREE, source, root=single_top_level_dir(root)
        )

    def parse_metadata(self, payload: StagedPayload) -> PackageMetadata:
        """Read a bundled desktop entry, if the archive ships one."""
        root = payload.root
        if root is None:
            return PackageMetadata()
        for subdir in DESKTOP_SEARCH_DIRS:
            desktop_file = find_desktop_file(root / subdir)
            if desktop_file is not None:
                return metadata_from_desktop_file(desktop_file)
        return PackageMetadata()
