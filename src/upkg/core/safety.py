"""Containment checks for content unpacked from untrusted packages.

Every archive entry and symlink produced while unpacking a package is
checked here before it is written, so that a crafted archive can never
place files outside its destination ("zip-slip") or plant a symlink that
points out of the destination tree.

The checks are lexical: they work on path strings and do not follow
symlinks. ``ensure_real_path_within`` complements them at write time by
resolving the real parent directory of each new file.
"""

import os
from pathlib import Path, PurePosixPath

from upkg.constants import MAX_PATH_LENGTH
from upkg.exceptions import SafetyViolationError


def _absolute(path: str | os.PathLike[str]) -> str:
    return os.path.normpath(os.path.abspath(os.fspath(path)))


def _contained(base: str, candidate: str) -> bool:
    return candidate == base or candidate.startswith(base.rstrip(os.sep) + os.sep)


def is_path_within_directory(
    base_dir: str | os.PathLike[str], path: str | os.PathLike[str]
) -> bool:
    """Return True if ``path`` is ``base_dir`` or lies beneath it."""
    relative = os.path.relpath(_absolute(path), _absolute(base_dir))
    return relative != ".." and not relative.startswith(".." + os.sep)


def validate_path(path: str) -> None:
    """Reject NUL bytes and over-long paths.

    Raises:
        SafetyViolationError: If the path fails the sanity checks

    """
    if "\x00" in path:
        msg = "path contains null bytes"
        raise SafetyViolationError(msg, path.replace("\x00", "\\0"))

    if len(path.encode("utf-8", errors="surrogateescape")) > MAX_PATH_LENGTH:
        msg = f"path too long: {len(path)} characters"
        raise SafetyViolationError(msg)


def validate_extract_path(
    target_dir: str | os.PathLike[str], entry_path: str
) -> Path:
    """Check that an archive entry stays inside ``target_dir``.

    Args:
        target_dir: Destination root of the extraction
        entry_path: Entry name exactly as stored in the archive

    Returns:
        Absolute destination path for the entry

    Raises:
        SafetyViolationError: On path traversal, absolute entry paths or
            any entry whose joined path escapes ``target_dir``

    """
    validate_path(entry_path)

    clean = os.path.normpath(entry_path) if entry_path else "."
    if ".." in PurePosixPath(clean).parts:
        msg = "path traversal detected (path contains ..)"
        raise SafetyViolationError(msg, entry_path)

    if os.path.isabs(clean):
        msg = "absolute path not allowed"
        raise SafetyViolationError(msg, entry_path)

    root = _absolute(target_dir)
    destination = _absolute(os.path.join(root, clean))
    if not _contained(root, destination):
        msg = "path escapes destination directory"
        raise SafetyViolationError(msg, entry_path)

    return Path(destination)


def validate_symlink(
    target_dir: str | os.PathLike[str],
    link_path: str | os.PathLike[str],
    link_target: str,
) -> None:
    """Check that a symlink resolves to a location inside ``target_dir``.

    The target is resolved relative to the directory holding the link.
    An absolute target is taken as is.

    Raises:
        SafetyViolationError: If the resolved target escapes

    """
    validate_path(link_target)

    link_dir = os.path.dirname(_absolute(link_path))
    resolved = _absolute(os.path.join(link_dir, link_target))
    if not _contained(_absolute(target_dir), resolved):
        msg = f"symlink target escapes destination: -> {link_target}"
        raise SafetyViolationError(msg, os.fspath(link_path))


def rebase_link_target(
    root: str | os.PathLike[str],
    link_path: str | os.PathLike[str],
    link_target: str,
) -> str:
    """Rewrite an absolute symlink target relative to a package root.

    Payloads of system packages are laid out as if extracted at ``/``, so
    ``usr/bin/app -> /opt/app/app`` really means ``<root>/opt/app/app``.
    Relative targets are returned unchanged.
    """
    if not os.path.isabs(link_target):
        return link_target
    rooted = os.path.join(_absolute(root), link_target.lstrip("/"))
    return os.path.relpath(rooted, os.path.dirname(_absolute(link_path)))


def ensure_real_path_within(
    root: str | os.PathLike[str], path: str | os.PathLike[str]
) -> None:
    """Check the real (symlink-resolved) parent of ``path`` is in ``root``.

    Lexical checks cannot see through symlinks created by earlier entries;
    this catches chains such as ``a -> .`` followed by ``a/../x``.

    Raises:
        SafetyViolationError: If the resolved parent escapes ``root``

    """
    real_root = os.path.realpath(root)
    real_parent = os.path.realpath(os.path.dirname(_absolute(path)))
    if not _contained(real_root, real_parent):
        msg = "entry resolves outside destination through a symlink"
        raise SafetyViolationError(msg, os.fspath(path))


def validate_tree(root: str | os.PathLike[str]) -> int:
    """Validate every entry and symlink of an already-unpacked tree.

    Used for trees produced by external tools (AppImage self-extraction,
    unsquashfs) inside a private staging directory, before anything from
    the tree is copied into a location upkg owns.

    Returns:
        Number of entries checked

    Raises:
        SafetyViolationError: On the first entry that fails a check

    """
    root_path = _absolute(root)
    checked = 0
    for dirpath, dirnames, filenames in os.walk(root_path):
        for name in dirnames + filenames:
            full_path = os.path.join(dirpath, name)
            validate_extract_path(root_path, os.path.relpath(full_path, root_path))
            if os.path.islink(full_path):
                validate_symlink(root_path, full_path, os.readlink(full_path))
            checked += 1
    return checked
