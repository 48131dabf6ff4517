"""AppImage packages.

The AppImage is copied into staging, unpacked there through the
extraction chain (self-extraction, then ``unsquashfs``) and the whole
tree is validated before anything from it is used. Only the AppImage
itself, its icons and a desktop entry are installed; the extracted tree
is discarded with the staging directory.
"""

import shutil
from pathlib import Path

from upkg.backends.base import BackendContext
from upkg.backends.desktop_metadata import (
    find_desktop_file,
    has_electron_resources,
    metadata_from_desktop_file,
)
from upkg.core.detection import is_appimage
from upkg.core.extraction import appimage_chain
from upkg.core.safety import validate_tree
from upkg.domain.types import (
    PackageMetadata,
    PackageType,
    PayloadLayout,
    StagedPayload,
)
from upkg.exceptions import ExtractionError
from upkg.logger import get_logger

logger = get_logger(__name__)

STAGED_APPIMAGE_NAME = "package.appimage"


class AppImageStrategy:
    """Installs an AppImage as ``<bin_dir>/<name>.appimage``."""

    package_type = PackageType.APPIMAGE

    def detect(self, path: Path) -> bool:
        """Claim ELF files carrying an embedded squashfs image."""
        return is_appimage(path)

    async def extract_or_stage(
        self, source: Path, staging: Path, context: BackendContext
    ) -> StagedPayload:
        """Copy the AppImage into staging and unpack its filesystem.

        Raises:
            ExtractionError: If the image cannot be copied or extracted
            ExtractionToolMissingError: If extraction needs unsquashfs
                and it is not installed
            SafetyViolationError: If the extracted tree escapes staging

        """
        staged = staging / STAGED_APPIMAGE_NAME
        try:
            shutil.copyfile(source, staged)
            staged.chmod(0o755)
        except OSError as e:
            msg = f"cannot stage AppImage: {e}"
            raise ExtractionError(msg, source.name) from e

        root = await appimage_chain(context.runner).run(staged, staging)
        checked = validate_tree(root)
        logger.debug("Validated %d extracted entries of %s", checked, source.name)
        return StagedPayload(
            PayloadLayout.FILE, source, root=root, executable=staged
        )

    def parse_metadata(self, payload: StagedPayload) -> PackageMetadata:
        """Read the top-level desktop entry of the extracted image."""
        root = payload.root
        if root is None:
            return PackageMetadata()

        desktop_file = find_desktop_file(root)
        if desktop_file is None:
            metadata = PackageMetadata()
        else:
            metadata = metadata_from_desktop_file(desktop_file)
            metadata.name = desktop_file.stem

        metadata.is_electron = has_electron_resources(root) or any(
            has_electron_resources(child)
            for child in sorted(root.iterdir())
            if child.is_dir() and not child.is_symlink()
        )
        return metadata
