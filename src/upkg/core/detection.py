"""Binary signature detection for package files.

All checks read a bounded prefix of the file and never write anything.
A missing file is reported as "not this format" rather than an error so
backends can be probed in sequence.
"""

from enum import Enum
from pathlib import Path

from upkg.constants import (
    AR_MAGIC,
    BZIP2_MAGIC,
    DEB_MARKER,
    DEB_MARKER_WINDOW,
    ELF_MAGIC,
    GZIP_MAGIC,
    HEADER_READ_SIZE,
    LZMA_MAGIC,
    RPM_MAGIC,
    SHEBANG,
    SQUASHFS_MAGICS,
    SQUASHFS_SCAN_CHUNK,
    SQUASHFS_SCAN_LIMIT,
    TAR_MAGIC,
    TAR_MAGIC_OFFSET,
    XZ_MAGIC,
    ZIP_MAGIC,
    ZSTD_MAGIC,
)
from upkg.exceptions import PackageNotFoundError
from upkg.logger import get_logger

logger = get_logger(__name__)


class Compression(Enum):
    """Compression wrappers recognized by their magic bytes."""

    NONE = "none"
    GZIP = "gzip"
    BZIP2 = "bzip2"
    XZ = "xz"
    LZMA = "lzma"
    ZSTD = "zstd"


class ArchiveFormat(Enum):
    """Archive containers handled by the tarball backend."""

    TAR = "tar"
    ZIP = "zip"


def read_header(path: Path, size: int = HEADER_READ_SIZE) -> bytes | None:
    """Read up to ``size`` leading bytes of a file.

    Returns:
        The bytes read, or None if the path is missing or not a file

    Raises:
        PackageNotFoundError: If the file exists but cannot be read

    """
    try:
        with path.open("rb") as f:
            return f.read(size)
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
        return None
    except OSError as e:
        msg = f"cannot read package: {e}"
        raise PackageNotFoundError(msg, str(path)) from e


def detect_compression(header: bytes) -> Compression:
    """Identify the compression wrapper of a stream from its first bytes."""
    if header.startswith(GZIP_MAGIC):
        return Compression.GZIP
    if header.startswith(XZ_MAGIC):
        return Compression.XZ
    if header.startswith(BZIP2_MAGIC):
        return Compression.BZIP2
    if header.startswith(ZSTD_MAGIC):
        return Compression.ZSTD
    if header.startswith(LZMA_MAGIC):
        return Compression.LZMA
    return Compression.NONE


def is_elf(header: bytes) -> bool:
    """Return True for an ELF executable header."""
    return header.startswith(ELF_MAGIC)


def is_shell_script(header: bytes) -> bool:
    """Return True for files starting with a shebang line."""
    return header.startswith(SHEBANG)


def find_squashfs_offset(
    path: Path, limit: int = SQUASHFS_SCAN_LIMIT
) -> int | None:
    """Locate an embedded squashfs superblock within the first ``limit`` bytes.

    The file is scanned in fixed-size chunks. The tail of each chunk is
    carried into the next one so a signature spanning a chunk boundary is
    still found.

    Returns:
        Byte offset of the signature, or None if absent

    """
    overlap = max(len(magic) for magic in SQUASHFS_MAGICS) - 1
    carry = b""
    consumed = 0
    try:
        with path.open("rb") as f:
            while consumed < limit:
                chunk = f.read(min(SQUASHFS_SCAN_CHUNK, limit - consumed))
                if not chunk:
                    break
                window = carry + chunk
                hits = [
                    pos
                    for pos in (window.find(magic) for magic in SQUASHFS_MAGICS)
                    if pos >= 0
                ]
                if hits:
                    offset = consumed - len(carry) + min(hits)
                    logger.debug(
                        "squashfs signature at offset %d in %s",
                        offset,
                        path.name,
                    )
                    return offset
                consumed += len(chunk)
                carry = window[-overlap:]
    except (FileNotFoundError, IsADirectoryError):
        return None
    return None


def is_appimage(path: Path) -> bool:
    """Return True for an ELF file carrying an embedded squashfs image.

    A ``.appimage`` suffix on an ELF file is accepted as well, which
    covers images whose filesystem lies past the scan window.
    """
    header = read_header(path, len(ELF_MAGIC))
    if header is None or not is_elf(header):
        return False
    if path.suffix.lower() == ".appimage":
        return True
    return find_squashfs_offset(path) is not None


def is_debian_package(header: bytes) -> bool:
    """Return True for an ar archive whose first member is debian-binary."""
    return header.startswith(AR_MAGIC) and (
        DEB_MARKER in header[:DEB_MARKER_WINDOW]
    )


def is_rpm_package(header: bytes) -> bool:
    """Return True for an RPM lead."""
    return header.startswith(RPM_MAGIC)


def is_tar(header: bytes) -> bool:
    """Return True for an uncompressed tar header (ustar magic)."""
    end = TAR_MAGIC_OFFSET + len(TAR_MAGIC)
    return header[TAR_MAGIC_OFFSET:end] == TAR_MAGIC


def detect_archive_format(header: bytes) -> ArchiveFormat | None:
    """Classify a tarball-backend candidate by its leading bytes.

    Compressed streams count as tar since the compressed payload cannot
    be inspected without decompressing it.
    """
    if header.startswith(ZIP_MAGIC):
        return ArchiveFormat.ZIP
    if is_tar(header):
        return ArchiveFormat.TAR
    if detect_compression(header) in (
        Compression.GZIP,
        Compression.XZ,
        Compression.BZIP2,
        Compression.ZSTD,
    ):
        return ArchiveFormat.TAR
    return None
