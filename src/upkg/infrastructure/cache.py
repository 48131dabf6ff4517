"""Refresh of the desktop database and hicolor icon cache.

Stale caches only delay menu updates until the next system refresh, so
nothing here ever fails an install: missing tools, non-zero exits and
timeouts are logged and reported through the return value.
"""

from pathlib import Path

from upkg.constants import (
    CACHE_REFRESH_TIMEOUT_SECONDS,
    TOOL_GTK_UPDATE_ICON_CACHE,
    TOOL_UPDATE_DESKTOP_DATABASE,
)
from upkg.exceptions import CommandError
from upkg.infrastructure.commands import CommandRunner
from upkg.logger import get_logger

logger = get_logger(__name__)


async def _refresh(runner: CommandRunner, tool: str, *args: str) -> bool:
    if not runner.exists(tool):
        logger.debug("%s not found, cache not refreshed", tool)
        return False
    try:
        result = await runner.run(
            tool, *args, timeout=CACHE_REFRESH_TIMEOUT_SECONDS
        )
    except CommandError as e:
        logger.warning("Cache refresh with %s failed: %s", tool, e)
        return False
    if not result.ok:
        logger.warning(
            "%s exited with %d: %s", tool, result.returncode, result.stderr.strip()
        )
        return False
    return True


async def refresh_desktop_caches(
    runner: CommandRunner, applications_dir: Path, icons_dir: Path
) -> bool:
    """Run ``update-desktop-database`` and ``gtk-update-icon-cache``.

    Args:
        runner: Command runner
        applications_dir: Directory holding desktop entries
        icons_dir: Icon root; the cache is rebuilt for its hicolor theme

    Returns:
        True if both refreshes succeeded

    """
    desktop_ok = await _refresh(
        runner, TOOL_UPDATE_DESKTOP_DATABASE, str(applications_dir)
    )

    hicolor = icons_dir / "hicolor"
    if hicolor.is_dir():
        icons_ok = await _refresh(
            runner, TOOL_GTK_UPDATE_ICON_CACHE, "-f", "-t", str(hicolor)
        )
    else:
        icons_ok = True

    return desktop_ok and icons_ok
