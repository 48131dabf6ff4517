"""Set up, hand out and tear down upkg loggers."""

import atexit
import logging
from pathlib import Path

from upkg.logger.config import load_log_settings
from upkg.logger.handlers import ROOT_LOGGER_NAME, attach_handlers
from upkg.logger.state import get_state


def _stop_listener() -> None:
    # QueueListener.stop() drains the queue before joining the thread
    state = get_state()
    if state.queue_listener is not None:
        state.queue_listener.stop()
        state.queue_listener = None


atexit.register(_stop_listener)


def setup_logging(
    name: str = ROOT_LOGGER_NAME,
    console_level: str | None = None,
    file_level: str | None = None,
    log_file: Path | None = None,
    enable_file_logging: bool = True,  # noqa: FBT001, FBT002
) -> logging.Logger:
    """Attach handlers to ``upkg`` on first use and return logger ``name``.

    Child loggers such as ``upkg.backends.engine`` carry no handlers and
    propagate to ``upkg``. Overrides only apply to the first call.

    Raises:
        ConfigurationError: If the log file cannot be opened

    """
    state = get_state()
    with state.lock:
        if not state.root_initialized:
            default_console, default_file, default_path = load_log_settings()
            attach_handlers(
                state,
                console_level or default_console,
                file_level or default_file,
                (log_file or default_path) if enable_file_logging else None,
            )
    return logging.getLogger(name)


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Return a module logger, initializing logging if needed.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Installing %s", name)

    """
    return setup_logging(name)


def clear_logger_state() -> None:
    """Flush and detach every upkg handler so tests can set up again."""
    state = get_state()
    with state.lock:
        _stop_listener()
        state.log_queue = None
        state.root_initialized = False
        state.config_applied = False
        root = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in root.handlers[:]:
            handler.close()
            root.removeHandler(handler)
