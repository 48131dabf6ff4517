"""Validated extraction of tar and zip archives.

Archive entries are never handed to ``tarfile.extractall`` or
``ZipFile.extractall``. Each entry goes through SafeExtractor, which
checks it against the destination root and the size limits before
writing a single byte.
"""

import lzma
import os
import stat
import tarfile
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from upkg.constants import (
    MAX_COMPRESSION_RATIO,
    MAX_EXTRACT_FILE_BYTES,
    MAX_EXTRACT_FILES,
    MAX_EXTRACT_TOTAL_BYTES,
)
from upkg.core.safety import (
    ensure_real_path_within,
    is_path_within_directory,
    rebase_link_target,
    validate_extract_path,
    validate_symlink,
)
from upkg.exceptions import ExtractionError, SafetyViolationError
from upkg.logger import get_logger

logger = get_logger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class ExtractionLimits:
    """Upper bounds applied while unpacking one archive."""

    max_total_bytes: int = MAX_EXTRACT_TOTAL_BYTES
    max_files: int = MAX_EXTRACT_FILES
    max_file_bytes: int = MAX_EXTRACT_FILE_BYTES
    max_ratio: int = MAX_COMPRESSION_RATIO


DEFAULT_LIMITS = ExtractionLimits()


class SafeExtractor:
    """Writes archive entries under a root after validating each one.

    Args:
        root: Destination directory, created if missing
        limits: Size and count limits for the archive
        compressed_size: Size of the archive on disk, for the ratio check
        rebase_absolute_links: Treat absolute symlink targets as relative
            to ``root`` (system packages are laid out as if unpacked at /)

    """

    def __init__(
        self,
        root: Path,
        limits: ExtractionLimits = DEFAULT_LIMITS,
        compressed_size: int = 0,
        *,
        rebase_absolute_links: bool = False,
    ) -> None:
        self.root = root
        self.limits = limits
        self.compressed_size = compressed_size
        self.rebase_absolute_links = rebase_absolute_links
        self.entries = 0
        self.total_bytes = 0
        self.root.mkdir(parents=True, exist_ok=True)

    def _entry(self, name: str) -> Path:
        self.entries += 1
        if self.entries > self.limits.max_files:
            msg = f"archive has more than {self.limits.max_files} entries"
            raise SafetyViolationError(msg, name)
        destination = validate_extract_path(self.root, name)
        ensure_real_path_within(self.root, destination)
        return destination

    def _account(self, name: str, size: int) -> None:
        self.total_bytes += size
        if self.total_bytes > self.limits.max_total_bytes:
            msg = (
                "archive expands beyond "
                f"{self.limits.max_total_bytes} bytes"
            )
            raise SafetyViolationError(msg, name)
        if (
            self.compressed_size > 0
            and self.total_bytes
            > self.compressed_size * self.limits.max_ratio
        ):
            msg = (
                "compression ratio exceeds "
                f"{self.limits.max_ratio}:1 (possible archive bomb)"
            )
            raise SafetyViolationError(msg, name)

    def _check_file_size(self, name: str, size: int) -> None:
        if size > self.limits.max_file_bytes:
            msg = f"entry larger than {self.limits.max_file_bytes} bytes"
            raise SafetyViolationError(msg, name)

    @staticmethod
    def _clear(destination: Path) -> None:
        if destination.is_symlink() or destination.is_file():
            destination.unlink()

    def directory(self, name: str, mode: int = 0o755) -> None:
        """Create a directory entry."""
        destination = self._entry(name)
        destination.mkdir(parents=True, exist_ok=True)
        destination.chmod((mode & 0o777) | 0o700)

    def write_file(
        self, name: str, source: BinaryIO, size: int, mode: int = 0o644
    ) -> None:
        """Stream a regular file entry to disk.

        Setuid, setgid and sticky bits are dropped from ``mode``.
        """
        self._check_file_size(name, size)
        destination = self._entry(name)
        destination.parent.mkdir(parents=True, exist_ok=True)
        self._clear(destination)

        written = 0
        with destination.open("wb") as out:
            while True:
                chunk = source.read(COPY_CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                self._check_file_size(name, written)
                self._account(name, len(chunk))
                out.write(chunk)

        destination.chmod((mode & 0o777) or 0o644)

    def symlink(self, name: str, target: str) -> None:
        """Create a symlink entry whose target stays inside the root."""
        destination = self._entry(name)
        if self.rebase_absolute_links:
            target = rebase_link_target(self.root, destination, target)
        validate_symlink(self.root, destination, target)

        # Lexically safe targets can still escape through earlier links
        real_target = os.path.realpath(destination.parent / target)
        if not is_path_within_directory(os.path.realpath(self.root), real_target):
            msg = f"symlink target resolves outside destination: -> {target}"
            raise SafetyViolationError(msg, name)

        destination.parent.mkdir(parents=True, exist_ok=True)
        self._clear(destination)
        destination.symlink_to(target)

    def hardlink(self, name: str, target_name: str) -> None:
        """Materialize a hard link entry as a copy of an extracted file."""
        if self.rebase_absolute_links:
            target_name = target_name.lstrip("/")
        source = validate_extract_path(self.root, target_name)
        ensure_real_path_within(self.root, source)
        if source.is_symlink() or not source.is_file():
            msg = f"hard link target was not extracted: {target_name}"
            raise SafetyViolationError(msg, name)

        with source.open("rb") as f:
            self.write_file(name, f, source.stat().st_size, source.stat().st_mode)

    def skip(self, name: str, reason: str) -> None:
        """Count and ignore an entry that is not materialized."""
        self._entry(name)
        logger.debug("Skipping archive entry %s (%s)", name, reason)


def extract_tar(
    archive: Path,
    destination: Path,
    limits: ExtractionLimits = DEFAULT_LIMITS,
    *,
    rebase_absolute_links: bool = False,
) -> int:
    """Extract a (possibly gzip/bzip2/xz compressed) tar archive.

    Returns:
        Number of entries processed

    Raises:
        ExtractionError: If the archive cannot be read
        SafetyViolationError: If any entry fails validation or limits

    """
    extractor = SafeExtractor(
        destination,
        limits,
        archive.stat().st_size,
        rebase_absolute_links=rebase_absolute_links,
    )
    try:
        with tarfile.open(archive, "r:*") as tar:
            for member in tar:
                if member.isdir():
                    extractor.directory(member.name, member.mode)
                elif member.isfile():
                    fileobj = tar.extractfile(member)
                    if fileobj is None:
                        extractor.skip(member.name, "unreadable member")
                        continue
                    with fileobj:
                        extractor.write_file(
                            member.name, fileobj, member.size, member.mode
                        )
                elif member.issym():
                    extractor.symlink(member.name, member.linkname)
                elif member.islnk():
                    extractor.hardlink(member.name, member.linkname)
                else:
                    extractor.skip(member.name, "special file")
    except (tarfile.TarError, EOFError, zlib.error, lzma.LZMAError) as e:
        msg = f"cannot read tar archive: {e}"
        raise ExtractionError(msg, archive.name) from e
    except OSError as e:
        msg = f"I/O error while extracting: {e}"
        raise ExtractionError(msg, archive.name) from e

    logger.debug("Extracted %d entries from %s", extractor.entries, archive.name)
    return extractor.entries


def extract_zip(
    archive: Path,
    destination: Path,
    limits: ExtractionLimits = DEFAULT_LIMITS,
) -> int:
    """Extract a zip archive, recreating symlinks stored by Unix zippers.

    Returns:
        Number of entries processed

    Raises:
        ExtractionError: If the archive cannot be read
        SafetyViolationError: If any entry fails validation or limits

    """
    extractor = SafeExtractor(destination, limits, archive.stat().st_size)
    try:
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                unix_mode = (info.external_attr >> 16) & 0xFFFF
                if info.is_dir():
                    extractor.directory(info.filename, unix_mode or 0o755)
                elif stat.S_ISLNK(unix_mode):
                    target = zf.read(info).decode("utf-8")
                    extractor.symlink(info.filename, target)
                else:
                    with zf.open(info) as src:
                        extractor.write_file(
                            info.filename,
                            src,
                            info.file_size,
                            unix_mode or 0o644,
                        )
    except (zipfile.BadZipFile, zlib.error, UnicodeDecodeError) as e:
        msg = f"cannot read zip archive: {e}"
        raise ExtractionError(msg, archive.name) from e
    except OSError as e:
        msg = f"I/O error while extracting: {e}"
        raise ExtractionError(msg, archive.name) from e

    logger.debug("Extracted %d entries from %s", extractor.entries, archive.name)
    return extractor.entries
