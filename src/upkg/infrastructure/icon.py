"""Icon discovery and installation into the hicolor theme.

Icons are found in an extracted package tree, sized from their path or
PNG header and copied to
``<icons_dir>/hicolor/<size>/apps/<install-id><ext>``. Each icon is
handled on its own: the caller logs and skips an icon that fails.
"""

import os
import re
import shutil
import struct
from dataclasses import dataclass
from pathlib import Path

from upkg.constants import (
    ICON_DEFAULT_SIZE,
    ICON_EXTENSIONS,
    ICON_SCALABLE,
    ICON_STANDARD_SIZES,
)
from upkg.core.safety import is_path_within_directory
from upkg.logger import get_logger

logger = get_logger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
DIR_ICON_NAME = ".DirIcon"
MIN_ICON_BYTES = 20

_SIZE_PATTERN = re.compile(r"(\d+)x(\d+)")
_FORMAT_SCORES = {".png": 100, ".svg": 50, ".xpm": 20}


@dataclass(frozen=True)
class IconFile:
    """An icon found in a package tree."""

    path: Path
    size: str
    extension: str


def _nearest_standard_size(width: int) -> str:
    nearest = min(ICON_STANDARD_SIZES, key=lambda size: abs(size - width))
    return f"{nearest}x{nearest}"


def _png_dimensions(path: Path) -> tuple[int, int] | None:
    try:
        with path.open("rb") as f:
            header = f.read(24)
    except OSError:
        return None
    if len(header) < 24 or not header.startswith(PNG_SIGNATURE):
        return None
    if header[12:16] != b"IHDR":
        return None
    width, height = struct.unpack(">II", header[16:24])
    return width, height


def detect_icon_size(path: Path, extension: str | None = None) -> str:
    """Determine the hicolor size directory for an icon.

    The size is taken from a ``NNxNN`` path component first, then
    ``scalable`` for SVGs, then the PNG header. Anything else is filed
    under the default size.
    """
    extension = (extension or path.suffix).lower()
    # e.g. usr/share/icons/hicolor/64x64/apps/app.png
    for part in reversed(path.parts[-4:]):
        match = _SIZE_PATTERN.search(part)
        if match:
            return _nearest_standard_size(int(match.group(1)))

    if extension == ".svg" or ICON_SCALABLE in path.parts:
        return ICON_SCALABLE

    if extension == ".png":
        dimensions = _png_dimensions(path)
        if dimensions and dimensions[0] > 0:
            return _nearest_standard_size(dimensions[0])

    return ICON_DEFAULT_SIZE


def discover_icons(root: Path) -> list[IconFile]:
    """List regular icon files under ``root``; symlinks are ignored."""
    icons: list[IconFile] = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            extension = path.suffix.lower()
            if extension not in ICON_EXTENSIONS or path.is_symlink():
                continue
            try:
                if path.stat().st_size < MIN_ICON_BYTES:
                    continue
            except OSError:
                continue
            icons.append(IconFile(path, detect_icon_size(path), extension))
    return icons


def find_dir_icon(root: Path) -> IconFile | None:
    """Return the AppImage ``.DirIcon`` if it resolves inside ``root``."""
    candidate = root / DIR_ICON_NAME
    if not candidate.exists():
        return None

    real_path = Path(os.path.realpath(candidate))
    if not is_path_within_directory(os.path.realpath(root), real_path):
        logger.warning("Ignoring %s pointing outside the package", DIR_ICON_NAME)
        return None
    if not real_path.is_file():
        return None

    extension = real_path.suffix.lower()
    if extension not in ICON_EXTENSIONS:
        try:
            with real_path.open("rb") as f:
                head = f.read(256)
        except OSError:
            return None
        if head.startswith(PNG_SIGNATURE):
            extension = ".png"
        elif b"<svg" in head:
            extension = ".svg"
        else:
            return None

    return IconFile(real_path, detect_icon_size(real_path, extension), extension)


def _icon_rank(icon: IconFile) -> tuple[int, int]:
    if icon.size == ICON_SCALABLE:
        pixels = max(ICON_STANDARD_SIZES) + 1
    else:
        pixels = int(icon.size.split("x", 1)[0])
    return pixels, _FORMAT_SCORES.get(icon.extension, 0)


def select_icons(icons: list[IconFile], names: list[str]) -> list[IconFile]:
    """Choose which discovered icons to install.

    Icons whose stem matches one of ``names`` are installed, one per
    size and format. When nothing matches, the single largest icon is
    used.
    """
    wanted = {name.lower() for name in names if name}
    matches = [icon for icon in icons if icon.path.stem.lower() in wanted]
    if not matches:
        return [max(icons, key=_icon_rank)] if icons else []

    selected: dict[tuple[str, str], IconFile] = {}
    for icon in matches:
        selected.setdefault((icon.size, icon.extension), icon)
    return list(selected.values())


def icon_destination(icons_dir: Path, icon: IconFile, install_id: str) -> Path:
    """Return the hicolor path an icon is installed to."""
    return (
        icons_dir / "hicolor" / icon.size / "apps" / f"{install_id}{icon.extension}"
    )


def install_icon(icon: IconFile, icons_dir: Path, install_id: str) -> Path:
    """Copy one icon into the hicolor theme.

    Raises:
        OSError: If the icon cannot be copied

    """
    destination = icon_destination(icons_dir, icon, install_id)
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(icon.path, destination)
    destination.chmod(0o644)
    logger.debug("Installed icon %s", destination)
    return destination
