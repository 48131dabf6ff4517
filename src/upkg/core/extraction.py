"""Ordered fallback chain of extraction mechanisms.

Formats that embed a compressed filesystem image (AppImage) or use a
compression without a stdlib decoder (zstd) are unpacked by external
tools. Several mechanisms may be able to do the job; they are tried in
order and the first success wins.

Failure reporting distinguishes two cases:

* the fallback tool is not installed -> ``ExtractionToolMissingError``
  (the user can fix this by installing it)
* the fallback ran and failed -> ``ExtractionError`` carrying the last
  error (the package itself is probably broken)
"""

import os
from pathlib import Path
from typing import Protocol

from upkg.constants import (
    EXTRACTION_TIMEOUT_SECONDS,
    TOOL_UNSQUASHFS,
    TOOL_ZSTD,
)
from upkg.core.detection import find_squashfs_offset
from upkg.exceptions import (
    CommandError,
    ExtractionError,
    ExtractionToolMissingError,
)
from upkg.infrastructure.commands import CommandRunner
from upkg.logger import get_logger

logger = get_logger(__name__)

SQUASHFS_ROOT = "squashfs-root"


class ExtractionStrategy(Protocol):
    """One way of turning ``source`` into extracted content."""

    name: str
    required_tool: str | None

    async def extract(
        self, source: Path, destination: Path, runner: CommandRunner
    ) -> Path:
        """Extract ``source`` and return the path of the result."""
        ...


class ExtractionChain:
    """Tries extraction strategies in order until one succeeds."""

    def __init__(
        self, strategies: list[ExtractionStrategy], runner: CommandRunner
    ) -> None:
        """Initialize chain.

        Args:
            strategies: Strategies in preference order; the last is the
                fallback whose absence is reported as a missing tool
            runner: Command runner passed to each strategy

        """
        if not strategies:
            msg = "extraction chain needs at least one strategy"
            raise ValueError(msg)
        self.strategies = strategies
        self.runner = runner

    async def run(self, source: Path, destination: Path) -> Path:
        """Run strategies until one succeeds.

        Returns:
            Path produced by the successful strategy

        Raises:
            ExtractionToolMissingError: If the fallback tool is not installed
            ExtractionError: If the strategies that ran all failed

        """
        last_error: Exception | None = None
        missing: list[str] = []
        fallback_skipped = False

        for index, strategy in enumerate(self.strategies):
            tool = strategy.required_tool
            if tool and not self.runner.exists(tool):
                logger.debug("Skipping %s: %s not installed", strategy.name, tool)
                missing.append(tool)
                fallback_skipped = index == len(self.strategies) - 1
                continue

            try:
                result = await strategy.extract(source, destination, self.runner)
            except (ExtractionError, CommandError) as e:
                logger.debug("%s failed for %s: %s", strategy.name, source.name, e)
                last_error = e
                continue

            logger.debug("%s extracted %s", strategy.name, source.name)
            return result

        if fallback_skipped:
            detail = f"; last error: {last_error}" if last_error else ""
            msg = (
                f"no fallback extraction tool available "
                f"(install {', '.join(missing)}){detail}"
            )
            raise ExtractionToolMissingError(msg, source.name, tools=missing)

        msg = f"all extraction methods failed: {last_error}"
        raise ExtractionError(msg, source.name) from last_error


class AppImageSelfExtraction:
    """Run the AppImage's own ``--appimage-extract`` in the destination."""

    name = "appimage-self-extract"
    required_tool: str | None = None

    async def extract(
        self, source: Path, destination: Path, runner: CommandRunner
    ) -> Path:
        """Extract into ``destination/squashfs-root``."""
        if not os.access(source, os.X_OK):
            source.chmod(source.stat().st_mode | 0o111)

        result = await runner.run(
            str(source.resolve()),
            "--appimage-extract",
            cwd=destination,
            timeout=EXTRACTION_TIMEOUT_SECONDS,
        )
        root = destination / SQUASHFS_ROOT
        if not result.ok or not root.is_dir():
            msg = (
                f"self-extraction exited with {result.returncode}: "
                f"{result.stderr.strip()}"
            )
            raise ExtractionError(msg, source.name)
        return root


class UnsquashfsExtraction:
    """Extract the embedded squashfs image with ``unsquashfs``."""

    name = "unsquashfs"
    required_tool: str | None = TOOL_UNSQUASHFS

    async def extract(
        self, source: Path, destination: Path, runner: CommandRunner
    ) -> Path:
        """Extract into ``destination/squashfs-root``."""
        offset = find_squashfs_offset(source)
        if offset is None:
            msg = "no embedded squashfs image found"
            raise ExtractionError(msg, source.name)

        root = destination / SQUASHFS_ROOT
        result = await runner.run(
            TOOL_UNSQUASHFS,
            "-f",
            "-d",
            str(root),
            "-o",
            str(offset),
            str(source),
            timeout=EXTRACTION_TIMEOUT_SECONDS,
        )
        if not result.ok or not root.is_dir():
            msg = (
                f"unsquashfs exited with {result.returncode}: "
                f"{result.stderr.strip()}"
            )
            raise ExtractionError(msg, source.name)
        return root


class ZstdToolDecompression:
    """Decompress a zstd stream to ``destination`` with the zstd CLI."""

    name = "zstd"
    required_tool: str | None = TOOL_ZSTD

    async def extract(
        self, source: Path, destination: Path, runner: CommandRunner
    ) -> Path:
        """Write the decompressed stream to the ``destination`` file."""
        result = await runner.run(
            TOOL_ZSTD,
            "-d",
            "-q",
            "-f",
            "-o",
            str(destination),
            str(source),
            timeout=EXTRACTION_TIMEOUT_SECONDS,
        )
        if not result.ok or not destination.is_file():
            msg = (
                f"zstd exited with {result.returncode}: "
                f"{result.stderr.strip()}"
            )
            raise ExtractionError(msg, source.name)
        return destination


def appimage_chain(runner: CommandRunner) -> ExtractionChain:
    """Self-extraction first, ``unsquashfs`` as fallback."""
    return ExtractionChain(
        [AppImageSelfExtraction(), UnsquashfsExtraction()], runner
    )


def zstd_chain(runner: CommandRunner) -> ExtractionChain:
    """Chain for zstd streams, which only the external tool can decode."""
    return ExtractionChain([ZstdToolDecompression()], runner)
