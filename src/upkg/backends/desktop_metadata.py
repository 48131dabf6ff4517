"""Metadata shared by strategies that ship freedesktop entries."""

import shlex
from pathlib import Path

from upkg.domain.types import PackageMetadata
from upkg.infrastructure.desktop_entry import parse_desktop_entry, split_list_field
from upkg.logger import get_logger

logger = get_logger(__name__)

ELECTRON_MARKER = Path("resources") / "app.asar"


def exec_program(exec_value: str | None) -> str | None:
    """Return the program of an Exec value, skipping an ``env`` prefix."""
    if not exec_value:
        return None
    try:
        tokens = shlex.split(exec_value)
    except ValueError:
        tokens = exec_value.split()

    if tokens and tokens[0] == "env":
        tokens = tokens[1:]
        while tokens and "=" in tokens[0] and not tokens[0].startswith("/"):
            tokens = tokens[1:]
    return tokens[0] if tokens else None


def find_desktop_file(directory: Path, preferred: str | None = None) -> Path | None:
    """Pick a bundled ``.desktop`` file in ``directory`` (not recursive).

    A file whose stem matches ``preferred`` wins; otherwise the first in
    name order. Symlinks pointing elsewhere are ignored.
    """
    if not directory.is_dir():
        return None
    candidates = sorted(
        p for p in directory.glob("*.desktop") if p.is_file() and not p.is_symlink()
    )
    if not candidates:
        return None
    if preferred:
        for candidate in candidates:
            if candidate.stem.lower() == preferred.lower():
                return candidate
    return candidates[0]


def metadata_from_desktop_file(desktop_file: Path) -> PackageMetadata:
    """Seed package metadata from a bundled desktop entry."""
    fields = parse_desktop_entry(desktop_file)
    if not fields:
        return PackageMetadata(desktop_file=desktop_file)

    return PackageMetadata(
        display_name=fields.get("Name") or None,
        comment=fields.get("Comment") or None,
        icon=fields.get("Icon") or None,
        categories=split_list_field(fields.get("Categories")),
        startup_wm_class=fields.get("StartupWMClass") or None,
        exec_hint=exec_program(fields.get("Exec")),
        desktop_file=desktop_file,
    )


def has_electron_resources(directory: Path) -> bool:
    """Return True if ``directory`` holds an Electron ``resources/app.asar``."""
    return (directory / ELECTRON_MARKER).exists()
