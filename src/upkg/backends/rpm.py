"""RPM packages, unpacked without rpm or root privileges.

The lead and headers are parsed in Python for NAME, VERSION and SUMMARY;
the cpio payload is decompressed (stdlib codecs, or the zstd tool) and
extracted entry by entry into a system-relative tree.
"""

import asyncio
from pathlib import Path

from upkg.backends.base import BackendContext
from upkg.backends.desktop_metadata import (
    find_desktop_file,
    metadata_from_desktop_file,
)
from upkg.backends.debian import APPLICATIONS_SUBDIR
from upkg.core.detection import (
    Compression,
    detect_compression,
    is_rpm_package,
    read_header,
)
from upkg.core.extraction import zstd_chain
from upkg.domain.types import (
    PackageMetadata,
    PackageType,
    PayloadLayout,
    StagedPayload,
)
from upkg.exceptions import ExtractionError
from upkg.infrastructure.archive import ExtractionLimits
from upkg.infrastructure.package_formats import (
    RpmInfo,
    copy_range,
    extract_cpio,
    open_decompressed,
    read_rpm_header,
)
from upkg.logger import get_logger

logger = get_logger(__name__)


def _extract_payload(
    source: Path,
    offset: int,
    compression: Compression,
    root: Path,
    limits: ExtractionLimits,
) -> int:
    with source.open("rb") as f:
        f.seek(offset)
        stream = open_decompressed(f, compression)
        return extract_cpio(
            stream,
            root,
            limits,
            source.stat().st_size - offset,
            rebase_absolute_links=True,
        )


def _package_info(info: RpmInfo) -> dict[str, str]:
    fields = {
        "Name": info.name,
        "Version": info.version,
        "Release": info.release,
        "Summary": info.summary,
    }
    return {key: value for key, value in fields.items() if value}


class RpmStrategy:
    """Installs an .rpm as a tree with a wrapper script."""

    package_type = PackageType.RPM

    def detect(self, path: Path) -> bool:
        """Claim files starting with the RPM lead magic."""
        header = read_header(path)
        return header is not None and is_rpm_package(header)

    async def extract_or_stage(
        self, source: Path, staging: Path, context: BackendContext
    ) -> StagedPayload:
        """Parse the headers and extract the cpio payload.

        Raises:
            ExtractionError: If the headers or payload are malformed
            SafetyViolationError: If any payload entry fails validation

        """
        try:
            info = await asyncio.to_thread(read_rpm_header, source)
            with source.open("rb") as f:
                f.seek(info.payload_offset)
                compression = detect_compression(f.read(8))
        except OSError as e:
            msg = f"cannot read package: {e}"
            raise ExtractionError(msg, source.name) from e

        root = staging / "root"
        if compression is Compression.ZSTD:
            try:
                compressed = copy_range(
                    source, info.payload_offset, staging / "payload.cpio.zst"
                )
            except OSError as e:
                msg = f"cannot copy payload: {e}"
                raise ExtractionError(msg, source.name) from e
            cpio = await zstd_chain(context.runner).run(
                compressed, staging / "payload.cpio"
            )
            await asyncio.to_thread(
                _extract_payload, cpio, 0, Compression.NONE, root, context.limits
            )
        else:
            await asyncio.to_thread(
                _extract_payload,
                source,
                info.payload_offset,
                compression,
                root,
                context.limits,
            )

        return StagedPayload(
            PayloadLayout.TREE,
            source,
            root=root,
            package_info=_package_info(info),
        )

    def parse_metadata(self, payload: StagedPayload) -> PackageMetadata:
        """Combine header tags with the packaged desktop entry."""
        info = payload.package_info
        name = info.get("Name")

        metadata = PackageMetadata()
        if payload.root is not None:
            desktop_file = find_desktop_file(
                payload.root / APPLICATIONS_SUBDIR, preferred=name
            )
            if desktop_file is not None:
                metadata = metadata_from_desktop_file(desktop_file)

        metadata.name = name
        metadata.version = info.get("Version")
        if not metadata.comment:
            metadata.comment = info.get("Summary")
        return metadata
