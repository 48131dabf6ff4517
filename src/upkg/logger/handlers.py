"""Console and rotating file handlers behind a QueueListener.

Records logged from inside the event loop are only enqueued; the listener
thread does the console and file I/O.
"""

import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path

from upkg.constants import (
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_DATE_FORMAT,
    LOG_CONSOLE_FORMAT,
    LOG_FILE_DATE_FORMAT,
    LOG_FILE_FORMAT,
    LOG_ROTATION_THRESHOLD_BYTES,
)
from upkg.exceptions import ConfigurationError
from upkg.logger.formatters import ConsoleFormatter
from upkg.logger.state import LoggerState

ROOT_LOGGER_NAME = "upkg"


def _level(name: str, default: int) -> int:
    return getattr(logging, name, default)


def _file_handler(log_file: Path, level: str) -> RotatingFileHandler:
    """Open upkg.log, rolling it over first when it is already too big.

    Raises:
        ConfigurationError: If the log directory or file cannot be opened

    """
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            filename=str(log_file),
            maxBytes=LOG_ROTATION_THRESHOLD_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        if log_file.stat().st_size >= LOG_ROTATION_THRESHOLD_BYTES:
            handler.doRollover()
    except OSError as e:
        msg = f"Failed to setup file logging: {e}"
        raise ConfigurationError(msg) from e

    handler.setFormatter(
        logging.Formatter(LOG_FILE_FORMAT, datefmt=LOG_FILE_DATE_FORMAT)
    )
    handler.setLevel(_level(level, logging.INFO))
    return handler


def attach_handlers(
    state: LoggerState,
    console_level: str,
    file_level: str,
    log_file: Path | None,
) -> None:
    """Route the ``upkg`` logger through a fresh queue and listener.

    ``log_file`` of None disables the file handler.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG)  # Handlers filter
    root.propagate = False
    for old in root.handlers[:]:
        old.close()
        root.removeHandler(old)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(
        ConsoleFormatter(LOG_CONSOLE_FORMAT, datefmt=LOG_CONSOLE_DATE_FORMAT)
    )
    console.setLevel(_level(console_level, logging.WARNING))
    handlers: list[logging.Handler] = [console]
    if log_file is not None:
        handlers.append(_file_handler(log_file, file_level))

    state.log_queue = queue.Queue(-1)
    state.queue_listener = QueueListener(
        state.log_queue, *handlers, respect_handler_level=True
    )
    state.queue_listener.start()
    root.addHandler(QueueHandler(state.log_queue))
    state.root_initialized = True
