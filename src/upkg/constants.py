"""Application-wide constants for upkg.

Values are grouped by concern and annotated with typing.Final so they are
treated as immutable by type checkers.
"""

from typing import Final

# =============================================================================
# Configuration
# =============================================================================

GLOBAL_CONFIG_VERSION: Final[str] = "1.0.0"
CONFIG_FILE_NAME: Final[str] = "settings.conf"
CONFIG_DIR_NAME: Final[str] = "upkg"
LOCK_FILE_NAME: Final[str] = "upkg.lock"

DEFAULT_LOG_LEVEL: Final[str] = "INFO"
DEFAULT_CONSOLE_LOG_LEVEL: Final[str] = "WARNING"

SECTION_DEFAULT: Final[str] = "DEFAULT"
SECTION_DESKTOP: Final[str] = "desktop"
SECTION_DIRECTORY: Final[str] = "directory"

KEY_CONFIG_VERSION: Final[str] = "config_version"
KEY_LOG_LEVEL: Final[str] = "log_level"
KEY_CONSOLE_LOG_LEVEL: Final[str] = "console_log_level"
KEY_WAYLAND_ENV_VARS: Final[str] = "wayland_env_vars"
KEY_CUSTOM_ENV_VARS: Final[str] = "custom_env_vars"
KEY_ELECTRON_DISABLE_SANDBOX: Final[str] = "electron_disable_sandbox"

DIRECTORY_KEYS: Final[tuple[str, ...]] = (
    "bin",
    "applications",
    "icons",
    "data",
    "logs",
)

RECORD_SCHEMA_VERSION: Final[str] = "1.0.0"

# =============================================================================
# Logging
# =============================================================================

LOG_FILE_NAME: Final[str] = "upkg.log"
LOG_DIR_ENV_VAR: Final[str] = "UPKG_LOG_DIR"
LOG_ROTATION_THRESHOLD_BYTES: Final[int] = 1024 * 1024  # 1 MB
LOG_BACKUP_COUNT: Final[int] = 3

LOG_CONSOLE_FORMAT: Final[str] = (
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
LOG_CONSOLE_DATE_FORMAT: Final[str] = "%H:%M:%S"
LOG_FILE_FORMAT: Final[str] = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "%(funcName)s:%(lineno)d - %(message)s"
)
LOG_FILE_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

LOG_COLORS: Final[dict[str, str]] = {
    "DEBUG": "\033[36m",  # Cyan
    "WARNING": "\033[33m",  # Yellow
    "ERROR": "\033[31m",  # Red
    "CRITICAL": "\033[35m",  # Magenta
    "RESET": "\033[0m",
}

# =============================================================================
# Detection signatures
# =============================================================================

ELF_MAGIC: Final[bytes] = b"\x7fELF"
SQUASHFS_MAGICS: Final[tuple[bytes, ...]] = (b"hsqs", b"sqsh")
SQUASHFS_SCAN_LIMIT: Final[int] = 2 * 1024 * 1024
SQUASHFS_SCAN_CHUNK: Final[int] = 8 * 1024

AR_MAGIC: Final[bytes] = b"!<arch>\n"
DEB_MARKER: Final[bytes] = b"debian"
DEB_MARKER_WINDOW: Final[int] = 60
RPM_MAGIC: Final[bytes] = b"\xed\xab\xee\xdb"

GZIP_MAGIC: Final[bytes] = b"\x1f\x8b"
XZ_MAGIC: Final[bytes] = b"\xfd7zXZ\x00"
BZIP2_MAGIC: Final[bytes] = b"BZh"
ZSTD_MAGIC: Final[bytes] = b"\x28\xb5\x2f\xfd"
LZMA_MAGIC: Final[bytes] = b"\x5d\x00\x00"
ZIP_MAGIC: Final[bytes] = b"PK\x03\x04"
TAR_MAGIC: Final[bytes] = b"ustar"
TAR_MAGIC_OFFSET: Final[int] = 257
SHEBANG: Final[bytes] = b"#!"

HEADER_READ_SIZE: Final[int] = 512

# =============================================================================
# Extraction limits and timeouts
# =============================================================================

MAX_EXTRACT_TOTAL_BYTES: Final[int] = 10 * 1024 * 1024 * 1024  # 10 GB
MAX_EXTRACT_FILES: Final[int] = 100_000
MAX_EXTRACT_FILE_BYTES: Final[int] = 5 * 1024 * 1024 * 1024  # 5 GB
MAX_COMPRESSION_RATIO: Final[int] = 1000
MAX_PATH_LENGTH: Final[int] = 4096
MAX_PACKAGE_NAME_LENGTH: Final[int] = 255
MAX_VERSION_LENGTH: Final[int] = 100

EXTRACTION_TIMEOUT_SECONDS: Final[float] = 300.0
DESKTOP_VALIDATE_TIMEOUT_SECONDS: Final[float] = 5.0
CACHE_REFRESH_TIMEOUT_SECONDS: Final[float] = 30.0

# =============================================================================
# Desktop integration
# =============================================================================

DESKTOP_SECTION_HEADER: Final[str] = "[Desktop Entry]"
DESKTOP_FILE_TYPE: Final[str] = "Application"
DESKTOP_FILE_VERSION: Final[str] = "1.5"
DESKTOP_DEFAULT_CATEGORIES: Final[tuple[str, ...]] = ("Utility",)
DESKTOP_GENERIC_ICON: Final[str] = "application-x-executable"
DESKTOP_EXEC_FIELD_CODE: Final[str] = "%U"
ELECTRON_NO_SANDBOX_FLAG: Final[str] = "--no-sandbox"

WAYLAND_ENV_VARS: Final[tuple[str, ...]] = (
    "GDK_BACKEND=wayland,x11",
    "QT_QPA_PLATFORM=wayland:xcb",
    "MOZ_ENABLE_WAYLAND=1",
    "ELECTRON_OZONE_PLATFORM_HINT=auto",
)

# Standard hicolor sizes searched by desktop environments
ICON_STANDARD_SIZES: Final[tuple[int, ...]] = (
    16,
    22,
    24,
    32,
    48,
    64,
    128,
    256,
    512,
)
ICON_DEFAULT_SIZE: Final[str] = "48x48"
ICON_SCALABLE: Final[str] = "scalable"
ICON_EXTENSIONS: Final[tuple[str, ...]] = (".png", ".svg", ".xpm")

# =============================================================================
# External tools
# =============================================================================

TOOL_UNSQUASHFS: Final[str] = "unsquashfs"
TOOL_ZSTD: Final[str] = "zstd"
TOOL_DESKTOP_FILE_VALIDATE: Final[str] = "desktop-file-validate"
TOOL_UPDATE_DESKTOP_DATABASE: Final[str] = "update-desktop-database"
TOOL_GTK_UPDATE_ICON_CACHE: Final[str] = "gtk-update-icon-cache"

# Tools reported by ``upkg doctor``, with what each is used for
DIAGNOSTIC_TOOLS: Final[tuple[tuple[str, str], ...]] = (
    (TOOL_UNSQUASHFS, "extract AppImages that cannot self-extract"),
    (TOOL_ZSTD, "decompress zstd deb and rpm payloads"),
    (TOOL_DESKTOP_FILE_VALIDATE, "validate desktop entries"),
    (TOOL_UPDATE_DESKTOP_DATABASE, "refresh the application menu cache"),
    (TOOL_GTK_UPDATE_ICON_CACHE, "refresh the icon theme cache"),
)

DIAGNOSTIC_ENV_VARS: Final[tuple[str, ...]] = (
    "XDG_DATA_HOME",
    "XDG_CONFIG_HOME",
    "XDG_SESSION_TYPE",
    "WAYLAND_DISPLAY",
)
