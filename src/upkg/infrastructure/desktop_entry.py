"""Desktop entry files for installed applications.

Entries follow the freedesktop.org desktop entry specification and are
written to ``<applications_dir>/<normalized-name>.desktop``. The path is
derived from the install id alone, so reinstalling a package always
targets the same file.

Entries bundled inside packages are only ever read to seed metadata; a
broken bundled entry degrades to defaults and never aborts an install.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path

from upkg.constants import (
    DESKTOP_DEFAULT_CATEGORIES,
    DESKTOP_FILE_TYPE,
    DESKTOP_FILE_VERSION,
    DESKTOP_SECTION_HEADER,
    DESKTOP_VALIDATE_TIMEOUT_SECONDS,
    TOOL_DESKTOP_FILE_VALIDATE,
)
from upkg.exceptions import CommandError
from upkg.infrastructure.commands import CommandRunner
from upkg.logger import get_logger

logger = get_logger(__name__)

# Characters that force an Exec argument to be quoted
_EXEC_RESERVED = re.compile(r"[\s\"'\\><~|&;$*?#()`]")
_MAX_BUNDLED_ENTRY_BYTES = 256 * 1024


@dataclass
class DesktopEntry:
    """Fields written to a generated desktop entry."""

    name: str
    exec_command: str
    icon: str
    comment: str = ""
    categories: list[str] = field(
        default_factory=lambda: list(DESKTOP_DEFAULT_CATEGORIES)
    )
    startup_wm_class: str | None = None
    terminal: bool = False
    startup_notify: bool = True


def desktop_file_name(install_id: str) -> str:
    """Return the entry file name for an install id."""
    return f"{install_id}.desktop"


def quote_exec_argument(arg: str) -> str:
    """Quote one Exec argument following the freedesktop Exec key rules.

    Inside double quotes, backslash, double quote, backtick and dollar
    are escaped with a backslash. A literal percent sign is doubled
    since ``%`` introduces field codes.
    """
    arg = arg.replace("%", "%%")
    if not _EXEC_RESERVED.search(arg):
        return arg
    escaped = re.sub(r'([\\"`$])', r"\\\1", arg)
    return f'"{escaped}"'


def build_exec_command(executable: Path, *args: str) -> str:
    """Join an executable and its arguments into an Exec value.

    Arguments are inserted verbatim so field codes such as ``%U`` and
    flags keep their meaning; only the executable path is quoted.
    """
    return " ".join([quote_exec_argument(str(executable)), *args])


def inject_wayland_env(exec_command: str, env_vars: list[str]) -> str:
    """Prefix an Exec command with ``env`` assignments.

    Args:
        exec_command: Exec value to wrap
        env_vars: ``KEY=value`` pairs; values are quoted when needed

    Returns:
        Exec value with an ``env`` prefix, or unchanged if no vars given

    """
    if not env_vars:
        return exec_command
    assignments = []
    for pair in env_vars:
        key, _, value = pair.partition("=")
        assignments.append(f"{key}={quote_exec_argument(value)}")
    return f"env {' '.join(assignments)} {exec_command}"


def parse_desktop_entry(path: Path) -> dict[str, str]:
    """Read the ``[Desktop Entry]`` group of a bundled entry.

    Best-effort: unreadable or malformed files yield an empty dict.
    Localized keys (``Name[de]``) are kept under their full key.
    """
    try:
        if path.stat().st_size > _MAX_BUNDLED_ENTRY_BYTES:
            logger.debug("Ignoring oversized desktop entry %s", path)
            return {}
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug("Cannot read desktop entry %s: %s", path, e)
        return {}

    fields: dict[str, str] = {}
    in_main_group = False
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("[") and line.endswith("]"):
            in_main_group = line == DESKTOP_SECTION_HEADER
            continue
        if in_main_group and "=" in line:
            key, value = line.split("=", 1)
            fields.setdefault(key.strip(), value.strip())
    return fields


def split_list_field(value: str | None) -> list[str]:
    """Split a ``;``-separated desktop entry list value."""
    if not value:
        return []
    return [item.strip() for item in value.split(";") if item.strip()]


def render_desktop_entry(entry: DesktopEntry) -> str:
    """Render a desktop entry as file content."""
    lines = [
        DESKTOP_SECTION_HEADER,
        f"Version={DESKTOP_FILE_VERSION}",
        f"Type={DESKTOP_FILE_TYPE}",
        f"Name={_single_line(entry.name)}",
    ]
    if entry.comment:
        lines.append(f"Comment={_single_line(entry.comment)}")
    lines.append(f"Exec={entry.exec_command}")
    lines.append(f"Icon={entry.icon}")
    lines.append(f"Terminal={'true' if entry.terminal else 'false'}")

    categories = entry.categories or list(DESKTOP_DEFAULT_CATEGORIES)
    lines.append(f"Categories={';'.join(categories)};")

    if entry.startup_wm_class:
        lines.append(f"StartupWMClass={_single_line(entry.startup_wm_class)}")
    if entry.startup_notify:
        lines.append("StartupNotify=true")

    lines.append("")
    return "\n".join(lines)


def _single_line(value: str) -> str:
    return " ".join(value.split())


def write_desktop_file(
    entry: DesktopEntry, applications_dir: Path, install_id: str
) -> Path:
    """Write ``entry`` to the applications directory.

    Returns:
        Path of the written file

    Raises:
        OSError: If the directory or file cannot be written

    """
    applications_dir.mkdir(parents=True, exist_ok=True)
    desktop_path = applications_dir / desktop_file_name(install_id)
    desktop_path.write_text(render_desktop_entry(entry), encoding="utf-8")
    desktop_path.chmod(0o755)
    logger.debug("Wrote desktop entry %s", desktop_path)
    return desktop_path


async def validate_desktop_file(
    desktop_path: Path, runner: CommandRunner
) -> bool:
    """Check an entry with ``desktop-file-validate`` when it is installed.

    A failed validation is reported but never raised; the entry is
    still usable by most desktop environments.

    Returns:
        False only if the validator ran and rejected the entry

    """
    if not runner.exists(TOOL_DESKTOP_FILE_VALIDATE):
        logger.debug("%s not installed, skipping", TOOL_DESKTOP_FILE_VALIDATE)
        return True

    try:
        result = await runner.run(
            TOOL_DESKTOP_FILE_VALIDATE,
            str(desktop_path),
            timeout=DESKTOP_VALIDATE_TIMEOUT_SECONDS,
        )
    except CommandError as e:
        logger.warning("Could not validate %s: %s", desktop_path.name, e)
        return False

    if not result.ok:
        logger.warning(
            "Desktop entry %s failed validation: %s",
            desktop_path.name,
            (result.stderr or result.stdout).strip(),
        )
        return False
    return True
