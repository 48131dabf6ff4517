"""Main CLI entry point for the upkg package installer.

This module provides the minimal entry point for the command-line
interface, delegating all functionality to specialized command
handlers and CLI components.
"""

import sys

import uvloop

from upkg.cli import CLIRunner
from upkg.logger import get_logger

logger = get_logger(__name__)


async def async_main(argv: list[str] | None = None) -> int:
    """Run the CLI asynchronously and return its exit code."""
    logger.debug("CLI started")
    runner = CLIRunner()
    try:
        exit_code = await runner.run(argv)
    except Exception:
        logger.exception("CLI encountered an error")
        raise
    logger.debug("CLI finished with exit code %d", exit_code)
    return exit_code


def main() -> None:
    """Run the CLI application on uvloop."""
    try:
        exit_code = uvloop.run(async_main())
    except KeyboardInterrupt:
        logger.info("CLI cancelled by user")
        sys.exit(1)
    except Exception as e:
        logger.exception("❌ Unexpected error")
        print(f"❌ Unexpected error: {e}")
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
