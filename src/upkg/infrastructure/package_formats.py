"""Readers for Debian (ar) and RPM (header + cpio) package containers.

Only what installation needs is parsed: the ar member table and control
fields of a .deb, the NAME/VERSION/SUMMARY tags and payload offset of an
.rpm, and the newc cpio stream that carries RPM payloads. Payload entries
are written through SafeExtractor, so every entry is validated before it
touches the disk.
"""

import bz2
import gzip
import lzma
import os
import shutil
import stat
import struct
import tarfile
import zlib
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from upkg.constants import AR_MAGIC, RPM_MAGIC
from upkg.core.detection import Compression
from upkg.exceptions import ExtractionError
from upkg.infrastructure.archive import (
    DEFAULT_LIMITS,
    ExtractionLimits,
    SafeExtractor,
)
from upkg.logger import get_logger

logger = get_logger(__name__)

# =============================================================================
# ar / Debian
# =============================================================================

AR_HEADER_SIZE = 60
AR_HEADER_END = b"`\n"


@dataclass(frozen=True)
class ArMember:
    """Location of one member inside an ar archive."""

    name: str
    offset: int
    size: int


def read_ar_members(path: Path) -> list[ArMember]:
    """List the members of an ar archive.

    Raises:
        ExtractionError: If the archive is malformed

    """
    members: list[ArMember] = []
    with path.open("rb") as f:
        if f.read(len(AR_MAGIC)) != AR_MAGIC:
            msg = "not an ar archive"
            raise ExtractionError(msg, path.name)

        while True:
            header = f.read(AR_HEADER_SIZE)
            if not header:
                break
            if len(header) < AR_HEADER_SIZE or header[58:60] != AR_HEADER_END:
                msg = "corrupt ar member header"
                raise ExtractionError(msg, path.name)
            try:
                size = int(header[48:58].decode("ascii").strip())
            except ValueError as e:
                msg = "invalid ar member size"
                raise ExtractionError(msg, path.name) from e

            name = header[0:16].decode("ascii", errors="replace").strip()
            members.append(ArMember(name.rstrip("/"), f.tell(), size))
            # Member data is padded to an even offset
            f.seek(size + size % 2, os.SEEK_CUR)

    return members


def copy_ar_member(path: Path, member: ArMember, destination: Path) -> Path:
    """Copy one ar member's bytes into ``destination``."""
    with path.open("rb") as src, destination.open("wb") as out:
        src.seek(member.offset)
        remaining = member.size
        while remaining > 0:
            chunk = src.read(min(remaining, 1024 * 1024))
            if not chunk:
                msg = f"truncated ar member {member.name}"
                raise ExtractionError(msg, path.name)
            out.write(chunk)
            remaining -= len(chunk)
    return destination


def find_ar_member(members: list[ArMember], prefix: str) -> ArMember | None:
    """Return the first member whose name starts with ``prefix``."""
    for member in members:
        if member.name.startswith(prefix):
            return member
    return None


def parse_control_fields(text: str) -> dict[str, str]:
    """Parse a Debian control stanza into a field dictionary.

    Continuation lines (leading whitespace) are appended to the previous
    field with a newline.
    """
    fields: dict[str, str] = {}
    current: str | None = None
    for line in text.splitlines():
        if not line.strip():
            continue
        if line[0] in " \t" and current is not None:
            fields[current] += "\n" + line.strip()
        elif ":" in line:
            key, value = line.split(":", 1)
            current = key.strip()
            fields[current] = value.strip()
    return fields


def read_deb_control(control_tar: Path) -> dict[str, str]:
    """Read the ``control`` file from a control.tar archive.

    Raises:
        ExtractionError: If the archive is unreadable or has no control file

    """
    try:
        with tarfile.open(control_tar, "r:*") as tar:
            for member in tar:
                if member.isfile() and os.path.normpath(member.name) == "control":
                    fileobj = tar.extractfile(member)
                    if fileobj is None:
                        break
                    with fileobj:
                        raw = fileobj.read(1024 * 1024)
                    return parse_control_fields(
                        raw.decode("utf-8", errors="replace")
                    )
    except (tarfile.TarError, EOFError, OSError, zlib.error, lzma.LZMAError) as e:
        msg = f"cannot read control archive: {e}"
        raise ExtractionError(msg, control_tar.name) from e

    msg = "control file missing from control archive"
    raise ExtractionError(msg, control_tar.name)


# =============================================================================
# RPM
# =============================================================================

RPM_LEAD_SIZE = 96
RPM_HEADER_MAGIC = b"\x8e\xad\xe8\x01"
RPM_HEADER_INTRO_SIZE = 16
RPM_INDEX_ENTRY_SIZE = 16
RPM_MAX_INDEX_ENTRIES = 100_000
RPM_MAX_STORE_BYTES = 256 * 1024 * 1024

RPMTAG_NAME = 1000
RPMTAG_VERSION = 1001
RPMTAG_RELEASE = 1002
RPMTAG_SUMMARY = 1004

# STRING, STRING_ARRAY, I18NSTRING
RPM_STRING_TYPES = frozenset({6, 8, 9})


@dataclass(frozen=True)
class RpmInfo:
    """Header fields of an RPM and where its payload starts."""

    name: str | None
    version: str | None
    release: str | None
    summary: str | None
    payload_offset: int


def _read_rpm_header_structure(f: BinaryIO, path: Path) -> tuple[dict[int, str], int]:
    intro = f.read(RPM_HEADER_INTRO_SIZE)
    if len(intro) < RPM_HEADER_INTRO_SIZE or intro[:4] != RPM_HEADER_MAGIC:
        msg = "invalid rpm header magic"
        raise ExtractionError(msg, path.name)

    index_count, store_size = struct.unpack(">II", intro[8:16])
    if index_count > RPM_MAX_INDEX_ENTRIES or store_size > RPM_MAX_STORE_BYTES:
        msg = "rpm header is implausibly large"
        raise ExtractionError(msg, path.name)

    index = f.read(index_count * RPM_INDEX_ENTRY_SIZE)
    store = f.read(store_size)
    if len(index) < index_count * RPM_INDEX_ENTRY_SIZE or len(store) < store_size:
        msg = "truncated rpm header"
        raise ExtractionError(msg, path.name)

    tags: dict[int, str] = {}
    for i in range(index_count):
        tag, tag_type, offset, _count = struct.unpack_from(
            ">IIII", index, i * RPM_INDEX_ENTRY_SIZE
        )
        if tag_type in RPM_STRING_TYPES and offset < store_size:
            end = store.find(b"\x00", offset)
            raw = store[offset:] if end < 0 else store[offset:end]
            tags[tag] = raw.decode("utf-8", errors="replace")

    consumed = RPM_HEADER_INTRO_SIZE + len(index) + store_size
    return tags, consumed


def read_rpm_header(path: Path) -> RpmInfo:
    """Parse the lead, signature and main header of an RPM.

    Raises:
        ExtractionError: If the file is not a well-formed RPM

    """
    with path.open("rb") as f:
        lead = f.read(RPM_LEAD_SIZE)
        if len(lead) < RPM_LEAD_SIZE or not lead.startswith(RPM_MAGIC):
            msg = "invalid rpm lead"
            raise ExtractionError(msg, path.name)

        _, signature_size = _read_rpm_header_structure(f, path)
        # The signature header is padded to an 8-byte boundary
        f.seek((8 - signature_size % 8) % 8, os.SEEK_CUR)

        tags, _ = _read_rpm_header_structure(f, path)
        return RpmInfo(
            name=tags.get(RPMTAG_NAME),
            version=tags.get(RPMTAG_VERSION),
            release=tags.get(RPMTAG_RELEASE),
            summary=tags.get(RPMTAG_SUMMARY),
            payload_offset=f.tell(),
        )


def open_decompressed(fileobj: BinaryIO, compression: Compression) -> BinaryIO:
    """Wrap a stream with the stdlib decompressor for ``compression``.

    Raises:
        ExtractionError: For compressions without a stdlib decoder (zstd)

    """
    if compression is Compression.GZIP:
        return gzip.GzipFile(fileobj=fileobj)
    if compression is Compression.BZIP2:
        return bz2.BZ2File(fileobj)
    if compression in (Compression.XZ, Compression.LZMA):
        return lzma.LZMAFile(fileobj)
    if compression is Compression.NONE:
        return fileobj
    msg = f"no built-in decoder for {compression.value} payloads"
    raise ExtractionError(msg)


# =============================================================================
# cpio (newc)
# =============================================================================

CPIO_NEWC_MAGICS = (b"070701", b"070702")
CPIO_HEADER_SIZE = 110
CPIO_TRAILER = "TRAILER!!!"


class _CpioReader:
    """Sequential reader that tracks position for 4-byte alignment."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream
        self.position = 0

    def read_exact(self, size: int) -> bytes:
        data = bytearray()
        while len(data) < size:
            chunk = self.stream.read(size - len(data))
            if not chunk:
                msg = "truncated cpio archive"
                raise ExtractionError(msg)
            data.extend(chunk)
        self.position += size
        return bytes(data)

    def skip(self, size: int) -> None:
        while size > 0:
            step = min(size, 1024 * 1024)
            self.read_exact(step)
            size -= step

    def align(self) -> None:
        self.skip((4 - self.position % 4) % 4)


class _BoundedStream:
    """File-like view of the next ``size`` bytes of a cpio reader."""

    def __init__(self, reader: _CpioReader, size: int) -> None:
        self.reader = reader
        self.remaining = size

    def read(self, size: int = -1) -> bytes:
        if self.remaining <= 0:
            return b""
        if size < 0 or size > self.remaining:
            size = self.remaining
        data = self.reader.read_exact(size)
        self.remaining -= len(data)
        return data

    def drain(self) -> None:
        self.reader.skip(self.remaining)
        self.remaining = 0


def extract_cpio(
    stream: BinaryIO,
    destination: Path,
    limits: ExtractionLimits = DEFAULT_LIMITS,
    compressed_size: int = 0,
    *,
    rebase_absolute_links: bool = False,
) -> int:
    """Extract a newc (or crc) cpio stream.

    In newc archives every hard-linked name but the last carries no data;
    those names are remembered by inode and materialized from the entry
    that does.

    Returns:
        Number of entries processed

    Raises:
        ExtractionError: If the stream is malformed
        SafetyViolationError: If any entry fails validation or limits

    """
    extractor = SafeExtractor(
        destination,
        limits,
        compressed_size,
        rebase_absolute_links=rebase_absolute_links,
    )
    reader = _CpioReader(stream)
    pending_links: dict[int, list[tuple[str, int]]] = defaultdict(list)

    try:
        while True:
            header = reader.read_exact(CPIO_HEADER_SIZE)
            if header[:6] not in CPIO_NEWC_MAGICS:
                msg = "unsupported cpio format (expected newc)"
                raise ExtractionError(msg)
            try:
                fields = [
                    int(header[6 + 8 * i : 14 + 8 * i], 16) for i in range(13)
                ]
            except ValueError as e:
                msg = "corrupt cpio header"
                raise ExtractionError(msg) from e

            inode, mode, nlink, file_size, name_size = (
                fields[0],
                fields[1],
                fields[4],
                fields[6],
                fields[11],
            )
            name = reader.read_exact(name_size).rstrip(b"\x00").decode(
                "utf-8", errors="surrogateescape"
            )
            reader.align()

            if name == CPIO_TRAILER:
                break

            if stat.S_ISDIR(mode):
                extractor.directory(name, mode)
            elif stat.S_ISLNK(mode):
                target = reader.read_exact(file_size).decode(
                    "utf-8", errors="surrogateescape"
                )
                extractor.symlink(name, target)
            elif stat.S_ISREG(mode):
                if file_size == 0 and nlink > 1:
                    pending_links[inode].append((name, mode))
                else:
                    body = _BoundedStream(reader, file_size)
                    extractor.write_file(name, body, file_size, mode)
                    body.drain()
                    for link_name, _ in pending_links.pop(inode, []):
                        extractor.hardlink(link_name, name)
            else:
                reader.skip(file_size)
                extractor.skip(name, "special file")

            reader.align()
    except (EOFError, OSError, zlib.error, lzma.LZMAError) as e:
        msg = f"cannot read cpio payload: {e}"
        raise ExtractionError(msg) from e

    # Hard-link groups whose data entry never appeared are empty files
    for names in pending_links.values():
        for link_name, link_mode in names:
            extractor.write_file(link_name, _EmptyStream(), 0, link_mode)

    logger.debug("Extracted %d cpio entries", extractor.entries)
    return extractor.entries


class _EmptyStream:
    def read(self, size: int = -1) -> bytes:
        return b""


def copy_range(path: Path, offset: int, destination: Path) -> Path:
    """Copy ``path`` from ``offset`` to the end into ``destination``."""
    with path.open("rb") as src, destination.open("wb") as out:
        src.seek(offset)
        shutil.copyfileobj(src, out, 1024 * 1024)
    return destination
