"""Tests for logger setup and teardown."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from upkg.logger import clear_logger_state, get_logger, setup_logging
from upkg.logger.state import get_state


def test_setup_logging_writes_file(tmp_path: Path) -> None:
    """Test records reach the rotating log file through the queue."""
    clear_logger_state()
    log_file = tmp_path / "logs" / "upkg.log"
    try:
        logger = setup_logging(
            "upkg.test_setup", console_level="ERROR", log_file=log_file
        )
        logger.info("installed %s", "demo")
        assert get_state().root_initialized
    finally:
        # Stopping the listener drains the queue
        clear_logger_state()

    assert "installed demo" in log_file.read_text()


def test_setup_without_file_logging(tmp_path: Path) -> None:
    """Test disabling file logging leaves only the console handler."""
    clear_logger_state()
    try:
        setup_logging(
            "upkg.test_console",
            log_file=tmp_path / "upkg.log",
            enable_file_logging=False,
        )

        handlers = get_state().queue_listener.handlers
        assert len(handlers) == 1
        assert not isinstance(handlers[0], RotatingFileHandler)
        assert not (tmp_path / "upkg.log").exists()
    finally:
        clear_logger_state()


def test_root_logger_does_not_propagate(tmp_path: Path) -> None:
    """Test the upkg root keeps records away from the global root logger."""
    clear_logger_state()
    try:
        setup_logging("upkg.test_propagation", log_file=tmp_path / "upkg.log")

        root = logging.getLogger("upkg")
        assert root.propagate is False
        assert len(root.handlers) == 1
    finally:
        clear_logger_state()


def test_clear_logger_state_resets() -> None:
    """Test clearing stops the listener and allows a fresh setup."""
    get_logger("upkg.test_clear")

    clear_logger_state()

    state = get_state()
    assert state.queue_listener is None
    assert not state.root_initialized
    assert logging.getLogger("upkg").handlers == []
