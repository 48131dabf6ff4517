"""System diagnostics service.

Checks the external tools upkg can use, the directories it installs into
and the integrity of every install record. Missing tools and missing
artifacts are warnings; directories upkg cannot write to and records it
cannot read are issues.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from upkg.backends import BackendContext, record_artifacts
from upkg.config.records import InstallRecordStore
from upkg.constants import DIAGNOSTIC_ENV_VARS, DIAGNOSTIC_TOOLS
from upkg.domain.types import InstallRecord
from upkg.exceptions import RecordStoreError
from upkg.logger import get_logger

logger = get_logger(__name__)


class DirectoryStatus(Enum):
    """State of one install directory."""

    OK = "ok"
    CREATED = "created"
    MISSING = "missing"
    NOT_A_DIRECTORY = "not a directory"
    NOT_WRITABLE = "not writable"

    @property
    def usable(self) -> bool:
        """True when installs can write into (or create) the directory."""
        return self in (
            DirectoryStatus.OK,
            DirectoryStatus.CREATED,
            DirectoryStatus.MISSING,
        )


@dataclass(frozen=True)
class ToolCheck:
    """Availability of one external tool."""

    name: str
    purpose: str
    found: bool


@dataclass(frozen=True)
class DirectoryCheck:
    """Status of one directory upkg writes to."""

    path: Path
    status: DirectoryStatus


@dataclass(frozen=True)
class BrokenInstall:
    """A recorded install whose artifacts are partly gone."""

    record: InstallRecord
    missing: list[str]


@dataclass
class DoctorReport:
    """Everything ``upkg doctor`` found."""

    tools: list[ToolCheck] = field(default_factory=list)
    directories: list[DirectoryCheck] = field(default_factory=list)
    records: int = 0
    broken: list[BrokenInstall] = field(default_factory=list)
    unreadable: list[str] = field(default_factory=list)
    environment: dict[str, str | None] = field(default_factory=dict)

    @property
    def issues(self) -> list[str]:
        """Problems that stop upkg from working correctly."""
        problems = [
            f"{check.path}: {check.status.value}"
            for check in self.directories
            if not check.status.usable
        ]
        problems.extend(f"unreadable record: {reason}" for reason in self.unreadable)
        return problems

    @property
    def warnings(self) -> list[str]:
        """Problems that degrade some installs."""
        notes = [
            f"{tool.name} not found ({tool.purpose})"
            for tool in self.tools
            if not tool.found
        ]
        notes.extend(
            f"{broken.record.install_id} has {len(broken.missing)} missing file(s)"
            for broken in self.broken
        )
        return notes


def check_directory(path: Path, *, fix: bool = False) -> DirectoryStatus:
    """Report whether installs can write into ``path``.

    With ``fix`` a missing directory is created.
    """
    if not path.exists():
        if not fix:
            return DirectoryStatus.MISSING
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Cannot create %s: %s", path, e)
            return DirectoryStatus.NOT_WRITABLE
        return DirectoryStatus.CREATED
    if not path.is_dir():
        return DirectoryStatus.NOT_A_DIRECTORY
    if not os.access(path, os.W_OK | os.X_OK):
        return DirectoryStatus.NOT_WRITABLE
    return DirectoryStatus.OK


def missing_artifacts(record: InstallRecord) -> list[str]:
    """Return the recorded paths that no longer exist."""
    return [
        artifact
        for artifact in record_artifacts(record)
        if not os.path.lexists(artifact)
    ]


class DoctorService:
    """Application service behind ``upkg doctor``."""

    def __init__(
        self, context: BackendContext, store: InstallRecordStore
    ) -> None:
        """Initialize doctor service.

        Args:
            context: Install paths and the runner used for tool lookup
            store: Persisted install records

        """
        self.context = context
        self.store = store

    def diagnose(
        self, *, fix: bool = False, env: Mapping[str, str] | None = None
    ) -> DoctorReport:
        """Run every check.

        Args:
            fix: Create missing install directories
            env: Environment to report (defaults to ``os.environ``)

        """
        env = os.environ if env is None else env
        report = DoctorReport()

        runner = self.context.runner
        for name, purpose in DIAGNOSTIC_TOOLS:
            report.tools.append(ToolCheck(name, purpose, runner.exists(name)))

        paths = self.context.paths
        for directory in (*paths.owned_dirs(), paths.records_dir):
            status = check_directory(directory, fix=fix)
            report.directories.append(DirectoryCheck(directory, status))

        for install_id in self.store.record_ids():
            try:
                record = self.store.get(install_id)
            except RecordStoreError as e:
                report.unreadable.append(f"{install_id} ({e.message})")
                continue
            if record is None:
                continue
            report.records += 1
            missing = missing_artifacts(record)
            if missing:
                report.broken.append(BrokenInstall(record, missing))

        for name in DIAGNOSTIC_ENV_VARS:
            report.environment[name] = env.get(name) or None

        logger.debug(
            "Doctor: %d issue(s), %d warning(s)",
            len(report.issues),
            len(report.warnings),
        )
        return report
