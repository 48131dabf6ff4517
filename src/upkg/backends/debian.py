"""Debian packages, unpacked without dpkg or root privileges.

The ar container is read in Python, ``control.tar.*`` supplies name and
version, and ``data.tar.*`` is extracted entry by entry into a
system-relative tree that is installed under the apps directory.
"""

import asyncio
from pathlib import Path

from upkg.backends.base import BackendContext
from upkg.backends.desktop_metadata import (
    find_desktop_file,
    metadata_from_desktop_file,
)
from upkg.core.detection import Compression, detect_compression, read_header
from upkg.core.detection import is_debian_package
from upkg.core.extraction import zstd_chain
from upkg.domain.types import (
    PackageMetadata,
    PackageType,
    PayloadLayout,
    StagedPayload,
)
from upkg.exceptions import ExtractionError
from upkg.infrastructure.archive import extract_tar
from upkg.infrastructure.package_formats import (
    ArMember,
    copy_ar_member,
    find_ar_member,
    read_ar_members,
    read_deb_control,
)
from upkg.logger import get_logger

logger = get_logger(__name__)

APPLICATIONS_SUBDIR = Path("usr") / "share" / "applications"


def strip_epoch(version: str) -> str:
    """Drop a Debian epoch prefix (``1:2.3`` -> ``2.3``)."""
    return version.split(":", 1)[-1]


def _copy_member(source: Path, member: ArMember, staging: Path) -> Path:
    try:
        return copy_ar_member(source, member, staging / member.name)
    except OSError as e:
        msg = f"cannot copy {member.name}: {e}"
        raise ExtractionError(msg, source.name) from e


async def _plain_tar(member_path: Path, context: BackendContext) -> Path:
    """Return a tar that tarfile can read, decompressing zstd first."""
    header = read_header(member_path, 4) or b""
    if detect_compression(header) is not Compression.ZSTD:
        return member_path
    return await zstd_chain(context.runner).run(
        member_path, member_path.with_suffix(".tar")
    )


class DebianStrategy:
    """Installs a .deb as a tree with a wrapper script."""

    package_type = PackageType.DEB

    def detect(self, path: Path) -> bool:
        """Claim ar archives whose first member is debian-binary."""
        header = read_header(path)
        return header is not None and is_debian_package(header)

    async def extract_or_stage(
        self, source: Path, staging: Path, context: BackendContext
    ) -> StagedPayload:
        """Read the control fields and extract the data archive.

        Raises:
            ExtractionError: If the package has no data archive or it
                cannot be read
            SafetyViolationError: If any data entry fails validation

        """
        try:
            members = await asyncio.to_thread(read_ar_members, source)
        except OSError as e:
            msg = f"cannot read package: {e}"
            raise ExtractionError(msg, source.name) from e

        data_member = find_ar_member(members, "data.tar")
        if data_member is None:
            msg = "no data.tar member in package"
            raise ExtractionError(msg, source.name)

        package_info: dict[str, str] = {}
        control_member = find_ar_member(members, "control.tar")
        if control_member is not None:
            control_path = _copy_member(source, control_member, staging)
            try:
                control_tar = await _plain_tar(control_path, context)
                package_info = read_deb_control(control_tar)
            except ExtractionError as e:
                logger.warning("Ignoring unreadable control data: %s", e)

        data_path = _copy_member(source, data_member, staging)
        data_tar = await _plain_tar(data_path, context)

        root = staging / "root"
        await asyncio.to_thread(
            extract_tar, data_tar, root, context.limits, rebase_absolute_links=True
        )
        return StagedPayload(
            PayloadLayout.TREE, source, root=root, package_info=package_info
        )

    def parse_metadata(self, payload: StagedPayload) -> PackageMetadata:
        """Combine control fields with the packaged desktop entry."""
        info = payload.package_info
        name = info.get("Package")
        description = info.get("Description", "")

        metadata = PackageMetadata()
        if payload.root is not None:
            desktop_file = find_desktop_file(
                payload.root / APPLICATIONS_SUBDIR, preferred=name
            )
            if desktop_file is not None:
                metadata = metadata_from_desktop_file(desktop_file)

        metadata.name = name
        if info.get("Version"):
            metadata.version = strip_epoch(info["Version"])
        if not metadata.comment and description:
            metadata.comment = description.splitlines()[0]
        return metadata
