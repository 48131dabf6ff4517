"""Console formatter for the upkg logger."""

import logging

from upkg.constants import LOG_COLORS


class ConsoleFormatter(logging.Formatter):
    """Print INFO as bare progress text and other levels with metadata.

    Example Output:
        INFO:     "Installed obsidian (appimage)"
        WARNING:  "12:30:45 - upkg.backends.engine - WARNING - ..."
    """

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.INFO:
            return record.getMessage()

        color = LOG_COLORS.get(record.levelname)
        if color is None:
            return super().format(record)

        # Other handlers share the record, so the plain name goes back
        levelname = record.levelname
        record.levelname = f"{color}{levelname}{LOG_COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname
