"""Path resolution for upkg configuration and install locations.

``Paths`` answers where upkg keeps its own files (settings, logs, lock).
``InstallPaths`` is the explicit set of directories a backend writes to;
it is built once and passed to every backend so no install step looks up
the home directory on its own.
"""

from dataclasses import dataclass
from pathlib import Path

from upkg.constants import (
    CONFIG_DIR_NAME,
    CONFIG_FILE_NAME,
    LOCK_FILE_NAME,
)
from upkg.domain.types import GlobalConfig
from upkg.exceptions import ConfigurationError


class Paths:
    """Locations of upkg's own configuration and state."""

    @classmethod
    def home_dir(cls) -> Path:
        """Return the user's home directory.

        Raises:
            ConfigurationError: If no home directory can be determined

        """
        try:
            home = Path.home()
        except (RuntimeError, KeyError) as e:
            msg = "cannot determine home directory"
            raise ConfigurationError(msg) from e
        if not str(home) or home == Path("/"):
            msg = "cannot determine home directory"
            raise ConfigurationError(msg, str(home))
        return home

    @classmethod
    def config_dir(cls) -> Path:
        """Return ``~/.config/upkg``."""
        return cls.home_dir() / ".config" / CONFIG_DIR_NAME

    @classmethod
    def settings_file(cls) -> Path:
        """Return the settings.conf path."""
        return cls.config_dir() / CONFIG_FILE_NAME

    @classmethod
    def lock_file(cls) -> Path:
        """Return the process lock file path."""
        return cls.config_dir() / LOCK_FILE_NAME

    @classmethod
    def data_dir(cls) -> Path:
        """Return ``~/.local/share/upkg``."""
        return cls.home_dir() / ".local" / "share" / CONFIG_DIR_NAME

    @classmethod
    def expand_path(cls, path_str: str) -> Path:
        """Expand ``~`` and make a configured path absolute.

        Example:
            >>> Paths.expand_path("~/bin")
            Path('/home/user/bin')

        """
        return Path(path_str).expanduser().resolve(strict=False)


@dataclass(frozen=True)
class InstallPaths:
    """Directories an install writes to.

    Attributes:
        bin_dir: Executables and wrapper scripts
        applications_dir: Desktop entries
        icons_dir: Icon theme root (hicolor lives beneath it)
        apps_dir: Extracted application trees
        records_dir: Persisted install records

    """

    bin_dir: Path
    applications_dir: Path
    icons_dir: Path
    apps_dir: Path
    records_dir: Path

    @classmethod
    def from_home(cls, home: Path) -> "InstallPaths":
        """Build the default XDG layout under ``home``."""
        share = home / ".local" / "share"
        data = share / CONFIG_DIR_NAME
        return cls(
            bin_dir=home / ".local" / "bin",
            applications_dir=share / "applications",
            icons_dir=share / "icons",
            apps_dir=data / "apps",
            records_dir=data / "records",
        )

    @classmethod
    def from_config(cls, config: GlobalConfig) -> "InstallPaths":
        """Build install paths from the [directory] section."""
        directory = config["directory"]
        return cls(
            bin_dir=directory["bin"],
            applications_dir=directory["applications"],
            icons_dir=directory["icons"],
            apps_dir=directory["data"] / "apps",
            records_dir=directory["data"] / "records",
        )

    def owned_dirs(self) -> tuple[Path, ...]:
        """Directories whose contents upkg may create and delete."""
        return (
            self.bin_dir,
            self.applications_dir,
            self.icons_dir,
            self.apps_dir,
        )

    def ensure(self) -> None:
        """Create every directory if missing."""
        for directory in (*self.owned_dirs(), self.records_dir):
            directory.mkdir(parents=True, exist_ok=True)
