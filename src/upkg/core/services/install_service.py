"""Install application service.

Ties the backend registry, the transaction and the record store into one
use case: a package is either fully installed and recorded, or every
change made on its behalf is rolled back.
"""

import dataclasses
from pathlib import Path

from upkg.backends import Backend, BackendContext, BackendRegistry
from upkg.config.records import InstallRecordStore
from upkg.core.transaction import Transaction
from upkg.domain.types import InstallOptions, InstallRecord
from upkg.exceptions import AlreadyInstalledError
from upkg.logger import get_logger
from upkg.utils.naming import normalize_filename
from upkg.utils.version import compare_versions

logger = get_logger(__name__)


def stale_artifacts(old: InstallRecord, new: InstallRecord) -> InstallRecord:
    """Return ``old`` reduced to the artifacts ``new`` does not reuse.

    Reinstalling with force may change the package format, leaving e.g.
    an AppImage behind when the new install is an extracted tree.
    """
    reused = {
        new.install_path,
        new.metadata.wrapper_script,
        *new.desktop_files,
        *new.metadata.icon_files,
    }
    return dataclasses.replace(
        old,
        install_path=old.install_path if old.install_path not in reused else "",
        desktop_files=[p for p in old.desktop_files if p not in reused],
        metadata=dataclasses.replace(
            old.metadata,
            wrapper_script=(
                old.metadata.wrapper_script
                if old.metadata.wrapper_script not in reused
                else None
            ),
            icon_files=[p for p in old.metadata.icon_files if p not in reused],
        ),
    )


def log_reinstall(old: InstallRecord, new: InstallRecord) -> None:
    """Log whether a forced reinstall moved the version up or down."""
    if not old.version or not new.version:
        logger.info("Reinstalled %s", new.install_id)
        return
    change = compare_versions(old.version, new.version)
    if change < 0:
        logger.info(
            "Upgraded %s: %s -> %s", new.install_id, old.version, new.version
        )
    elif change > 0:
        logger.info(
            "Downgraded %s: %s -> %s", new.install_id, old.version, new.version
        )
    else:
        logger.info("Reinstalled %s %s", new.install_id, new.version)


class InstallService:
    """Application service for installing local package files."""

    def __init__(
        self, registry: BackendRegistry, store: InstallRecordStore
    ) -> None:
        """Initialize install service.

        Args:
            registry: Backends in detection order
            store: Persisted install records

        """
        self.registry = registry
        self.store = store

    @classmethod
    def create_default(cls, context: BackendContext) -> "InstallService":
        """Build the service with every backend and the record store."""
        return cls(
            BackendRegistry.create_default(context),
            InstallRecordStore(context.paths.records_dir),
        )

    def _check_recorded(self, install_id: str, options: InstallOptions) -> None:
        if not options.force and self.store.exists(install_id):
            msg = "already installed (use --force to reinstall)"
            raise AlreadyInstalledError(msg, install_id)

    async def install(
        self, source: Path, options: InstallOptions | None = None
    ) -> InstallRecord:
        """Detect, install and record a package.

        Returns:
            The saved install record

        Raises:
            UpkgError: Any install failure, after rollback has run

        """
        options = options or InstallOptions()
        if options.custom_name:
            self._check_recorded(normalize_filename(options.custom_name), options)

        backend = self.registry.detect_backend(source)
        logger.debug("Using %s backend for %s", backend.name, source.name)

        tx = Transaction()
        try:
            record = await backend.install(source, options, tx)
            self._check_recorded(record.install_id, options)
            previous = self.store.get(record.install_id)

            tx.add(
                f"restore record {record.install_id}",
                lambda: self._restore_record(record.install_id, previous),
            )
            self.store.save(record)

            if previous is not None:
                log_reinstall(previous, record)
                await self._remove_stale(previous, record)
            tx.commit()
        except BaseException:
            failures = tx.rollback()
            for description, error in failures:
                logger.error("Rollback could not %s: %s", description, error)
            raise

        return record

    def _restore_record(
        self, install_id: str, previous: InstallRecord | None
    ) -> None:
        if previous is None:
            self.store.remove(install_id)
        else:
            self.store.save(previous)

    async def _remove_stale(self, old: InstallRecord, new: InstallRecord) -> None:
        stale = stale_artifacts(old, new)
        backend: Backend = self.registry.get(old.package_type)
        report = await backend.uninstall(stale)
        for artifact, reason in report.failed:
            logger.warning("Could not remove old %s: %s", artifact, reason)
