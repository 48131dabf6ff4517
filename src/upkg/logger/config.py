"""Log levels before and after settings.conf is readable.

Loggers exist before the config layer can be imported, so setup starts
from hardcoded levels and the CLI applies the configured ones later.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from upkg.constants import (
    CONFIG_DIR_NAME,
    DEFAULT_CONSOLE_LOG_LEVEL,
    DEFAULT_LOG_LEVEL,
    LOG_DIR_ENV_VAR,
    LOG_FILE_NAME,
)
from upkg.exceptions import UpkgError
from upkg.logger.state import LoggerState


def load_log_settings() -> tuple[str, str, Path]:
    """Return (console_level, file_level, log_path) used at startup.

    UPKG_LOG_DIR replaces ~/.config/upkg/logs; the test suite points it
    at a temporary directory.
    """
    env_log_dir = os.getenv(LOG_DIR_ENV_VAR)
    if env_log_dir:
        log_dir = Path(env_log_dir).expanduser()
    else:
        log_dir = Path.home() / ".config" / CONFIG_DIR_NAME / "logs"
    return DEFAULT_CONSOLE_LOG_LEVEL, DEFAULT_LOG_LEVEL, log_dir / LOG_FILE_NAME


def update_logger_from_config(state: LoggerState) -> None:
    """Set handler levels from ``log_level`` and ``console_log_level``.

    A settings file that cannot be loaded leaves the startup levels.
    """
    try:
        from upkg.config import GlobalConfigManager  # noqa: PLC0415

        config = GlobalConfigManager().load_global_config()
        console_level = getattr(logging, config["console_log_level"])
        file_level = getattr(logging, config["log_level"])
    except (AttributeError, ImportError, KeyError, OSError, UpkgError) as e:
        logging.getLogger(__name__).debug("Keeping startup log levels: %s", e)
        return

    if state.queue_listener is not None:
        for handler in state.queue_listener.handlers:
            # RotatingFileHandler is itself a StreamHandler
            if isinstance(handler, RotatingFileHandler):
                handler.setLevel(file_level)
            elif isinstance(handler, logging.StreamHandler):
                handler.setLevel(console_level)
    state.config_applied = True
