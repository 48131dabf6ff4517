"""Domain types for installation records and options.

These types carry no I/O. Records convert to and from plain dictionaries
for the JSON record store.
"""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, TypedDict


class PackageType(Enum):
    """Package formats handled by the installer."""

    APPIMAGE = "appimage"
    BINARY = "binary"
    DEB = "deb"
    RPM = "rpm"
    TARBALL = "tarball"


class WaylandSupport(Enum):
    """Display protocol support recorded for an installed package."""

    UNKNOWN = "unknown"
    NATIVE = "native"
    XWAYLAND = "xwayland"
    HYBRID = "hybrid"


class PayloadLayout(Enum):
    """How a staged payload is placed on disk.

    FILE payloads are copied as a single executable into the bin
    directory; TREE payloads are copied as a directory into the upkg apps
    directory and launched through a wrapper script.
    """

    FILE = "file"
    TREE = "tree"


@dataclass(frozen=True)
class InstallOptions:
    """Caller-supplied options for a single install."""

    custom_name: str | None = None
    force: bool = False
    skip_desktop: bool = False
    skip_wayland_env: bool = False


@dataclass
class PackageMetadata:
    """Metadata read from a package before it is installed."""

    name: str | None = None
    display_name: str | None = None
    version: str | None = None
    comment: str | None = None
    icon: str | None = None
    categories: list[str] = field(default_factory=list)
    startup_wm_class: str | None = None
    exec_hint: str | None = None
    desktop_file: Path | None = None
    is_electron: bool = False


@dataclass
class StagedPayload:
    """Result of extracting or staging a package in a temp directory.

    Attributes:
        layout: Whether the payload installs as one file or a tree
        source: Original package file
        root: Extracted tree, or None for payloads that are not extracted
        executable: File copied to the bin directory (FILE) or a
            preselected main executable (TREE)
        package_info: Header fields of the package container (Debian
            control file, RPM header tags)

    """

    layout: PayloadLayout
    source: Path
    root: Path | None = None
    executable: Path | None = None
    package_info: dict[str, str] = field(default_factory=dict)


class DesktopConfig(TypedDict):
    """Desktop integration settings from the [desktop] section."""

    wayland_env_vars: bool
    custom_env_vars: list[str]
    electron_disable_sandbox: bool


class DirectoryConfig(TypedDict):
    """Directories from the [directory] section."""

    bin: Path
    applications: Path
    icons: Path
    data: Path
    logs: Path


class GlobalConfig(TypedDict):
    """Parsed settings.conf."""

    config_version: str
    log_level: str
    console_log_level: str
    desktop: DesktopConfig
    directory: DirectoryConfig


@dataclass
class RecordMetadata:
    """Extra facts about an install needed to reverse it later."""

    icon_files: list[str] = field(default_factory=list)
    wrapper_script: str | None = None
    wayland_support: WaylandSupport = WaylandSupport.UNKNOWN
    install_method: str = "local"
    categories: list[str] = field(default_factory=list)
    comment: str | None = None
    startup_wm_class: str | None = None
    original_desktop_file: str | None = None


@dataclass
class InstallRecord:
    """Persisted description of one successful install."""

    install_id: str
    package_type: PackageType
    name: str
    install_path: str
    original_file: str
    version: str | None = None
    install_date: str = field(
        default_factory=lambda: datetime.now(UTC).isoformat()
    )
    desktop_files: list[str] = field(default_factory=list)
    metadata: RecordMetadata = field(default_factory=RecordMetadata)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        data = asdict(self)
        data["package_type"] = self.package_type.value
        data["metadata"]["wayland_support"] = (
            self.metadata.wayland_support.value
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InstallRecord":
        """Build a record from a dictionary produced by to_dict()."""
        raw_metadata = dict(data.get("metadata") or {})
        raw_metadata["wayland_support"] = WaylandSupport(
            raw_metadata.get("wayland_support", WaylandSupport.UNKNOWN.value)
        )
        return cls(
            install_id=data["install_id"],
            package_type=PackageType(data["package_type"]),
            name=data["name"],
            install_path=data["install_path"],
            original_file=data["original_file"],
            version=data.get("version"),
            install_date=data["install_date"],
            desktop_files=list(data.get("desktop_files", [])),
            metadata=RecordMetadata(**raw_metadata),
        )
