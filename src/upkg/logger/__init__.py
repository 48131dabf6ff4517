"""Logging for upkg.

Module loggers propagate to ``upkg``, whose QueueHandler feeds a listener
thread writing to the console and to a rotating upkg.log. Log with
%-style arguments:

    >>> logger = get_logger(__name__)
    >>> logger.info("Installed %s", name)

UPKG_LOG_DIR overrides the log directory.
"""

from upkg.logger import config as _config
from upkg.logger.logger import clear_logger_state, get_logger, setup_logging
from upkg.logger.state import get_state

__all__ = [
    "clear_logger_state",
    "get_logger",
    "setup_logging",
    "update_logger_from_config",
]


def update_logger_from_config() -> None:
    """Apply levels from settings.conf to the running handlers."""
    _config.update_logger_from_config(get_state())
