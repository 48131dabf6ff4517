"""Backend contract: per-format strategies and their shared context.

A strategy knows only its own format: how to recognise it, how to
unpack it into a private staging directory and what metadata it
carries. Everything that touches directories upkg owns lives in the
shared engine (``upkg.backends.engine``).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from upkg.config.paths import InstallPaths
from upkg.core.heuristics import ExecutableScorer
from upkg.domain.types import (
    DesktopConfig,
    PackageMetadata,
    PackageType,
    StagedPayload,
)
from upkg.infrastructure.archive import DEFAULT_LIMITS, ExtractionLimits
from upkg.infrastructure.commands import CommandRunner


def default_desktop_config() -> DesktopConfig:
    """Desktop settings used when no settings.conf has been loaded."""
    return DesktopConfig(
        wayland_env_vars=True,
        custom_env_vars=[],
        electron_disable_sandbox=False,
    )


@dataclass
class BackendContext:
    """Dependencies injected into every backend.

    Attributes:
        paths: Directories the install writes to
        runner: External command capability
        desktop: Desktop integration settings
        limits: Extraction limits for archive payloads
        scorer: Main-executable heuristics for tree payloads

    """

    paths: InstallPaths
    runner: CommandRunner
    desktop: DesktopConfig = field(default_factory=default_desktop_config)
    limits: ExtractionLimits = DEFAULT_LIMITS
    scorer: ExecutableScorer = field(default_factory=ExecutableScorer)


class PackageStrategy(Protocol):
    """Format-specific part of a backend."""

    package_type: PackageType

    def detect(self, path: Path) -> bool:
        """Return True if ``path`` is in this strategy's format.

        Must read at most a bounded prefix of the file, create nothing,
        and return False for a missing file.
        """
        ...

    async def extract_or_stage(
        self, source: Path, staging: Path, context: BackendContext
    ) -> StagedPayload:
        """Unpack or copy ``source`` into the private ``staging`` dir."""
        ...

    def parse_metadata(self, payload: StagedPayload) -> PackageMetadata:
        """Read name, version and desktop hints from a staged payload.

        Best-effort: missing or malformed metadata yields empty fields.
        """
        ...
