"""Pytest configuration and fixtures for upkg tests.

Besides logging setup this module provides builders for the package
formats upkg reads (ELF, AppImage, tar, ar/deb, cpio, rpm) so tests work
on real bytes instead of mocked parsers, and a scripted CommandRunner.
"""

import gzip
import io
import logging
import os
import struct
import tarfile
import tempfile
from collections.abc import Callable
from pathlib import Path

import pytest

# Must be set before the first upkg import creates the log file handler
os.environ.setdefault(
    "UPKG_LOG_DIR", tempfile.mkdtemp(prefix="upkg-test-logs-")
)

from upkg.backends.base import BackendContext, default_desktop_config  # noqa: E402
from upkg.config.paths import InstallPaths  # noqa: E402
from upkg.infrastructure.commands import CommandResult  # noqa: E402

ELF_HEADER = b"\x7fELF\x02\x01\x01" + b"\x00" * 57


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Enable log propagation for all loggers during tests.

    The ``upkg`` root logger is created with propagate=False in
    production code; caplog only sees records that reach the root.
    """
    original_propagation = {}
    for name in list(logging.Logger.manager.loggerDict.keys()):
        if name.startswith("upkg"):
            logger = logging.getLogger(name)
            original_propagation[name] = logger.propagate
            logger.propagate = True

    yield

    for name, propagate_value in original_propagation.items():
        logger = logging.getLogger(name)
        logger.propagate = propagate_value


# =============================================================================
# Command runner double
# =============================================================================

Handler = Callable[..., CommandResult]


class FakeRunner:
    """CommandRunner that records calls and replays scripted handlers.

    Handlers are keyed by the command's base name, so an AppImage run by
    absolute path is matched by its file name.
    """

    def __init__(self, available: set[str] | None = None) -> None:
        self.available = set(available or ())
        self.handlers: dict[str, Handler] = {}
        self.calls: list[tuple[str, tuple[str, ...], Path | None]] = []

    def on(self, name: str, handler: Handler) -> None:
        self.handlers[name] = handler

    def exists(self, name: str) -> bool:
        return name in self.available

    def called(self, name: str) -> bool:
        return any(Path(call[0]).name == name for call in self.calls)

    async def run(
        self,
        name: str,
        *args: str,
        cwd: Path | None = None,
        timeout: float = 60.0,
    ) -> CommandResult:
        self.calls.append((name, args, cwd))
        handler = self.handlers.get(Path(name).name)
        if handler is None:
            return CommandResult(0, "", "")
        return handler(*args, cwd=cwd)


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Provide a runner with no external tools installed."""
    return FakeRunner()


@pytest.fixture
def install_paths(tmp_path: Path) -> InstallPaths:
    """Provide install directories under a temporary home."""
    return InstallPaths.from_home(tmp_path / "home")


@pytest.fixture
def context(install_paths: InstallPaths, fake_runner: FakeRunner) -> BackendContext:
    """Provide a backend context wired to the fake runner."""
    return BackendContext(
        paths=install_paths,
        runner=fake_runner,
        desktop=default_desktop_config(),
    )


# =============================================================================
# Package builders
# =============================================================================


def build_elf(path: Path, size: int = 4096) -> Path:
    """Write a minimal ELF-looking executable."""
    path.write_bytes(ELF_HEADER + b"\x01" * size)
    path.chmod(0o755)
    return path


def build_appimage(path: Path) -> Path:
    """Write an ELF file with an embedded squashfs signature."""
    path.write_bytes(ELF_HEADER + b"\x00" * 1024 + b"hsqs" + b"\x00" * 256)
    path.chmod(0o755)
    return path


def png_bytes(width: int = 64, height: int = 64) -> bytes:
    """Return a PNG signature and IHDR chunk for the given size."""
    ihdr = struct.pack(">II", width, height) + b"\x08\x06\x00\x00\x00"
    return (
        b"\x89PNG\r\n\x1a\n"
        + struct.pack(">I", 13)
        + b"IHDR"
        + ihdr
        + b"\x00" * 16
    )


def tar_bytes(
    files: dict[str, bytes],
    *,
    symlinks: dict[str, str] | None = None,
    executables: frozenset[str] | set[str] = frozenset(),
    mode: str = "w:gz",
) -> bytes:
    """Build a tar archive in memory.

    Entry names are written verbatim, including unsafe ones.
    """
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode=mode) as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755 if name in executables else 0o644
            tar.addfile(info, io.BytesIO(data))
        for name, target in (symlinks or {}).items():
            info = tarfile.TarInfo(name)
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tar.addfile(info)
    return buffer.getvalue()


def build_tar(path: Path, files: dict[str, bytes], **kwargs) -> Path:
    """Write a tar archive built by tar_bytes()."""
    path.write_bytes(tar_bytes(files, **kwargs))
    return path


def ar_bytes(members: list[tuple[str, bytes]]) -> bytes:
    """Build a System V ar archive."""
    out = bytearray(b"!<arch>\n")
    for name, data in members:
        header = (
            f"{name:<16}{0:<12}{0:<6}{0:<6}{'100644':<8}{len(data):<10}`\n"
        ).encode("ascii")
        out += header + data
        if len(data) % 2:
            out += b"\n"
    return bytes(out)


def build_deb(
    path: Path,
    control: str,
    files: dict[str, bytes],
    *,
    symlinks: dict[str, str] | None = None,
    executables: frozenset[str] | set[str] = frozenset(),
) -> Path:
    """Write a .deb with a control file and a gzip data archive."""
    control_tar = tar_bytes({"./control": control.encode("utf-8")})
    data_tar = tar_bytes(files, symlinks=symlinks, executables=executables)
    path.write_bytes(
        ar_bytes(
            [
                ("debian-binary", b"2.0\n"),
                ("control.tar.gz", control_tar),
                ("data.tar.gz", data_tar),
            ]
        )
    )
    return path


def cpio_entry(
    name: str,
    data: bytes = b"",
    mode: int = 0o100644,
    inode: int = 1,
    nlink: int = 1,
) -> bytes:
    """Encode one newc cpio entry, padded to 4-byte alignment."""
    name_bytes = name.encode("utf-8") + b"\x00"
    fields = [inode, mode, 0, 0, nlink, 0, len(data), 0, 0, 0, 0, len(name_bytes), 0]
    out = b"070701" + b"".join(f"{value:08x}".encode() for value in fields)
    out += name_bytes
    out += b"\x00" * ((4 - len(out) % 4) % 4)
    out += data
    out += b"\x00" * ((4 - len(out) % 4) % 4)
    return out


def cpio_bytes(entries: list[bytes]) -> bytes:
    """Join cpio entries and append the trailer."""
    return b"".join(entries) + cpio_entry("TRAILER!!!", mode=0, inode=0)


def rpm_header(tags: dict[int, str]) -> bytes:
    """Encode an RPM header structure holding string tags."""
    index = b""
    store = b""
    for tag, value in tags.items():
        index += struct.pack(">IIII", tag, 6, len(store), 1)
        store += value.encode("utf-8") + b"\x00"
    intro = b"\x8e\xad\xe8\x01" + b"\x00" * 4
    intro += struct.pack(">II", len(tags), len(store))
    return intro + index + store


def build_rpm(path: Path, tags: dict[int, str], cpio: bytes) -> Path:
    """Write an .rpm with a gzip-compressed cpio payload."""
    lead = b"\xed\xab\xee\xdb" + b"\x03\x00" + b"\x00" * 90
    # Odd-sized signature store exercises the 8-byte padding
    signature = rpm_header({269: "abc"})
    padding = b"\x00" * ((8 - len(signature) % 8) % 8)
    path.write_bytes(
        lead + signature + padding + rpm_header(tags) + gzip.compress(cpio)
    )
    return path


def make_tree(root: Path, files: dict[str, bytes], executables: set[str]) -> Path:
    """Create files under ``root``; names in ``executables`` get 0755."""
    for name, data in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        path.chmod(0o755 if name in executables else 0o644)
    return root


def fake_self_extract(files: dict[str, bytes], executables: set[str] | None = None):
    """Handler emulating ``<appimage> --appimage-extract`` in cwd."""

    def handler(*args: str, cwd: Path | None = None) -> CommandResult:
        assert args == ("--appimage-extract",)
        assert cwd is not None
        make_tree(cwd / "squashfs-root", files, executables or set())
        return CommandResult(0, "", "")

    return handler
