"""Global configuration manager for INI settings."""

import configparser
from datetime import UTC, datetime
from pathlib import Path

from upkg.config.paths import Paths
from upkg.constants import (
    DEFAULT_CONSOLE_LOG_LEVEL,
    DEFAULT_LOG_LEVEL,
    DIRECTORY_KEYS,
    GLOBAL_CONFIG_VERSION,
    KEY_CONFIG_VERSION,
    KEY_CONSOLE_LOG_LEVEL,
    KEY_CUSTOM_ENV_VARS,
    KEY_ELECTRON_DISABLE_SANDBOX,
    KEY_LOG_LEVEL,
    KEY_WAYLAND_ENV_VARS,
    SECTION_DEFAULT,
    SECTION_DESKTOP,
    SECTION_DIRECTORY,
)
from upkg.domain.types import DesktopConfig, DirectoryConfig, GlobalConfig
from upkg.exceptions import ConfigurationError, ValidationError
from upkg.logger import get_logger
from upkg.utils.validation import validate_environment_variable

logger = get_logger(__name__)

# Type alias for raw INI config dictionary
RawConfigDict = dict[str, str | dict[str, str]]

_VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

_SECTION_COMMENTS = {
    SECTION_DEFAULT: (
        "# Logging\n"
        "#   log_level         level written to the log file\n"
        "#   console_log_level level printed to the terminal\n"
    ),
    SECTION_DESKTOP: (
        "# Desktop integration\n"
        "#   wayland_env_vars         add Wayland hints to launchers\n"
        "#   custom_env_vars          extra KEY=value pairs, comma separated\n"
        "#   electron_disable_sandbox launch Electron apps with --no-sandbox\n"
    ),
    SECTION_DIRECTORY: (
        "# Directories\n"
        "#   bin          executables and launcher scripts\n"
        "#   applications desktop entries\n"
        "#   icons        icon theme root\n"
        "#   data         extracted applications and install records\n"
        "#   logs         upkg.log\n"
    ),
}


def _new_parser() -> configparser.ConfigParser:
    return configparser.ConfigParser(
        inline_comment_prefixes=("#",),
        interpolation=None,
    )


class GlobalConfigManager:
    """Manages the global INI configuration."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize global config manager.

        Args:
            config_dir: Configuration directory path
                (defaults to ~/.config/upkg)

        Raises:
            ConfigurationError: If the home directory cannot be determined

        """
        self.config_dir = config_dir or Paths.config_dir()
        self.settings_file = self.config_dir / "settings.conf"

    def get_default_global_config(self) -> RawConfigDict:
        """Get default global configuration values."""
        home = Paths.home_dir()
        share = home / ".local" / "share"
        return {
            KEY_CONFIG_VERSION: GLOBAL_CONFIG_VERSION,
            KEY_LOG_LEVEL: DEFAULT_LOG_LEVEL,
            KEY_CONSOLE_LOG_LEVEL: DEFAULT_CONSOLE_LOG_LEVEL,
            SECTION_DESKTOP: {
                KEY_WAYLAND_ENV_VARS: "true",
                KEY_CUSTOM_ENV_VARS: "",
                KEY_ELECTRON_DISABLE_SANDBOX: "false",
            },
            SECTION_DIRECTORY: {
                "bin": str(home / ".local" / "bin"),
                "applications": str(share / "applications"),
                "icons": str(share / "icons"),
                "data": str(share / "upkg"),
                "logs": str(self.config_dir / "logs"),
            },
        }

    def _create_config_from_defaults(
        self, defaults: RawConfigDict
    ) -> configparser.ConfigParser:
        config = _new_parser()

        flat_defaults = {
            key: str(value)
            for key, value in defaults.items()
            if not isinstance(value, dict)
        }
        config.read_dict({SECTION_DEFAULT: flat_defaults})

        for key, value in defaults.items():
            if isinstance(value, dict):
                config.add_section(key)
                for subkey, subvalue in value.items():
                    config.set(key, subkey, str(subvalue))

        return config

    def load_global_config(self) -> GlobalConfig:
        """Load settings.conf, creating it with defaults on first use.

        Returns:
            Typed global configuration

        Raises:
            ConfigurationError: If the file exists but cannot be parsed

        """
        defaults = self.get_default_global_config()
        config = self._create_config_from_defaults(defaults)

        if self.settings_file.exists():
            try:
                config.read(self.settings_file, encoding="utf-8")
            except configparser.Error as e:
                msg = f"invalid settings file: {e}"
                raise ConfigurationError(msg, str(self.settings_file)) from e
        else:
            global_config = self._convert_to_global_config(config)
            self.save_global_config(global_config)
            logger.debug("Created default settings at %s", self.settings_file)
            return global_config

        return self._convert_to_global_config(config)

    def save_global_config(self, config: GlobalConfig) -> None:
        """Save configuration to settings.conf with explanatory comments."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(tz=UTC).strftime("%Y-%m-%d %H:%M:%S")

        sections: dict[str, dict[str, str]] = {
            SECTION_DEFAULT: {
                KEY_CONFIG_VERSION: config["config_version"],
                KEY_LOG_LEVEL: config["log_level"],
                KEY_CONSOLE_LOG_LEVEL: config["console_log_level"],
            },
            SECTION_DESKTOP: {
                KEY_WAYLAND_ENV_VARS: _format_bool(
                    config["desktop"]["wayland_env_vars"]
                ),
                KEY_CUSTOM_ENV_VARS: ",".join(
                    config["desktop"]["custom_env_vars"]
                ),
                KEY_ELECTRON_DISABLE_SANDBOX: _format_bool(
                    config["desktop"]["electron_disable_sandbox"]
                ),
            },
            SECTION_DIRECTORY: {
                key: str(config["directory"][key])  # type: ignore[literal-required]
                for key in DIRECTORY_KEYS
            },
        }

        with self.settings_file.open("w", encoding="utf-8") as f:
            f.write("# upkg configuration\n")
            f.write(f"# Last updated: {timestamp}\n\n")
            for section, values in sections.items():
                f.write(_SECTION_COMMENTS[section])
                f.write(f"[{section}]\n")
                for key, value in values.items():
                    f.write(f"{key} = {value}\n")
                f.write("\n")

    def _convert_to_global_config(
        self, config: configparser.ConfigParser
    ) -> GlobalConfig:
        """Convert a parsed configuration into a typed GlobalConfig."""
        defaults = config.defaults()

        def level(key: str, fallback: str) -> str:
            value = defaults.get(key, fallback).strip().upper()
            if value not in _VALID_LOG_LEVELS:
                logger.warning("Invalid %s '%s', using %s", key, value, fallback)
                return fallback
            return value

        desktop = DesktopConfig(
            wayland_env_vars=self._get_bool(
                config, SECTION_DESKTOP, KEY_WAYLAND_ENV_VARS, default=True
            ),
            custom_env_vars=self._parse_env_vars(
                config.get(SECTION_DESKTOP, KEY_CUSTOM_ENV_VARS, fallback="")
            ),
            electron_disable_sandbox=self._get_bool(
                config,
                SECTION_DESKTOP,
                KEY_ELECTRON_DISABLE_SANDBOX,
                default=False,
            ),
        )

        directories = {
            key: Paths.expand_path(config.get(SECTION_DIRECTORY, key))
            for key in DIRECTORY_KEYS
        }

        return GlobalConfig(
            config_version=defaults.get(
                KEY_CONFIG_VERSION, GLOBAL_CONFIG_VERSION
            ),
            log_level=level(KEY_LOG_LEVEL, DEFAULT_LOG_LEVEL),
            console_log_level=level(
                KEY_CONSOLE_LOG_LEVEL, DEFAULT_CONSOLE_LOG_LEVEL
            ),
            desktop=desktop,
            directory=DirectoryConfig(**directories),  # type: ignore[typeddict-item]
        )

    @staticmethod
    def _get_bool(
        config: configparser.ConfigParser,
        section: str,
        key: str,
        *,
        default: bool,
    ) -> bool:
        try:
            return config.getboolean(section, key, fallback=default)
        except ValueError:
            logger.warning(
                "Invalid boolean for [%s] %s, using %s", section, key, default
            )
            return default

    @staticmethod
    def _parse_env_vars(raw: str) -> list[str]:
        """Split ``KEY=value`` pairs, dropping invalid ones with a warning."""
        env_vars: list[str] = []
        for item in raw.split(","):
            pair = item.strip()
            if not pair:
                continue
            name, sep, value = pair.partition("=")
            try:
                if not sep:
                    msg = "expected KEY=value"
                    raise ValidationError(msg, pair)
                validate_environment_variable(name.strip(), value)
            except ValidationError as e:
                logger.warning("Ignoring custom environment variable: %s", e)
                continue
            env_vars.append(f"{name.strip()}={value.strip()}")
        return env_vars


def _format_bool(value: bool) -> str:
    return "true" if value else "false"
