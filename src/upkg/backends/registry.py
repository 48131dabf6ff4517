"""Backend registry and package format detection."""

from pathlib import Path

from upkg.backends.appimage import AppImageStrategy
from upkg.backends.base import BackendContext
from upkg.backends.binary import BinaryStrategy
from upkg.backends.debian import DebianStrategy
from upkg.backends.engine import Backend
from upkg.backends.rpm import RpmStrategy
from upkg.backends.tarball import TarballStrategy
from upkg.core.detection import is_shell_script, read_header
from upkg.domain.types import PackageType
from upkg.exceptions import PackageNotFoundError, UnsupportedPackageError
from upkg.logger import get_logger

logger = get_logger(__name__)

SUPPORTED_TYPES_HELP = (
    "Supported package types:\n"
    "  • AppImage (.AppImage)\n"
    "  • DEB (.deb)\n"
    "  • RPM (.rpm)\n"
    "  • Tarball (.tar.gz, .tar.xz, .tar.bz2, .tar.zst, .tgz)\n"
    "  • Zip (.zip)\n"
    "  • ELF Binary (executable files)"
)

FLATPAK_EXTENSIONS = frozenset({".flatpak", ".flatpakref", ".flatpakrepo"})


def unsupported_message(path: Path) -> str:
    """Explain why ``path`` was rejected and what upkg accepts."""
    msg = f"cannot detect package type for: {path.name}\n\n{SUPPORTED_TYPES_HELP}"

    header = read_header(path, 2) or b""
    if is_shell_script(header):
        msg += (
            "\n\nNote: Shell scripts are not supported as standalone packages."
            "\nWorkaround: Package your script in a tarball (.tar.gz) "
            "with any required assets."
        )

    suffix = path.suffix.lower()
    if suffix in FLATPAK_EXTENSIONS:
        msg += (
            "\n\nNote: This looks like a Flatpak package."
            "\nUse: flatpak install <file-or-ref>"
        )
    elif suffix == ".snap":
        msg += (
            "\n\nNote: This looks like a Snap package."
            "\nUse: sudo snap install <file.snap>"
        )
    return msg


class BackendRegistry:
    """Ordered collection of backends; the first to claim a file wins."""

    def __init__(self, backends: list[Backend]) -> None:
        """Initialize registry.

        Args:
            backends: Backends in detection order

        """
        self._backends = list(backends)

    @classmethod
    def create_default(cls, context: BackendContext) -> "BackendRegistry":
        """Build the registry with every format in detection order.

        Debian and RPM packages have unambiguous magics and go first.
        AppImages are ELF files, so they are tried before plain binaries;
        archives come last.
        """
        strategies = [
            DebianStrategy(),
            RpmStrategy(),
            AppImageStrategy(),
            BinaryStrategy(),
            TarballStrategy(),
        ]
        return cls([Backend(strategy, context) for strategy in strategies])

    @property
    def backends(self) -> list[Backend]:
        """Registered backends in detection order (copy)."""
        return list(self._backends)

    def get(self, package_type: PackageType) -> Backend:
        """Return the backend handling ``package_type``.

        Raises:
            UnsupportedPackageError: If no backend is registered for it

        """
        for backend in self._backends:
            if backend.package_type is package_type:
                return backend
        msg = "no backend registered"
        raise UnsupportedPackageError(msg, package_type.value)

    def detect_backend(self, path: Path) -> Backend:
        """Find the backend for a package file.

        Raises:
            PackageNotFoundError: If ``path`` is not an existing file
            UnsupportedPackageError: If no backend claims the file

        """
        if not path.is_file():
            msg = "file does not exist"
            raise PackageNotFoundError(msg, str(path))

        logger.debug("Detecting backend for %s", path)
        for backend in self._backends:
            try:
                claimed = backend.detect(path)
            except PackageNotFoundError as e:
                logger.warning("Backend %s detection failed: %s", backend.name, e)
                continue
            if claimed:
                logger.debug("Backend %s claims %s", backend.name, path.name)
                return backend

        raise UnsupportedPackageError(unsupported_message(path))
