"""Remove application service."""

from upkg.backends import BackendRegistry, UninstallReport
from upkg.config.records import InstallRecordStore
from upkg.domain.types import InstallRecord
from upkg.exceptions import PackageNotFoundError
from upkg.logger import get_logger
from upkg.utils.naming import normalize_filename

logger = get_logger(__name__)


class RemoveService:
    """Uninstalls recorded packages and drops their records."""

    def __init__(
        self, registry: BackendRegistry, store: InstallRecordStore
    ) -> None:
        """Initialize remove service.

        Args:
            registry: Backends, looked up by the recorded package type
            store: Persisted install records

        """
        self.registry = registry
        self.store = store

    def find(self, name: str) -> InstallRecord:
        """Look up a record by install id, then by display name.

        Raises:
            PackageNotFoundError: If nothing is recorded under ``name``

        """
        record = self.store.get(normalize_filename(name))
        if record is None:
            lowered = name.lower()
            record = next(
                (r for r in self.store.list_records() if r.name.lower() == lowered),
                None,
            )
        if record is None:
            msg = "not installed"
            raise PackageNotFoundError(msg, name)
        return record

    async def remove(self, name: str) -> UninstallReport:
        """Remove the package recorded under ``name``.

        The record is kept when an artifact could not be removed, so the
        removal can be retried.

        Raises:
            PackageNotFoundError: If nothing is recorded under ``name``

        """
        record = self.find(name)
        backend = self.registry.get(record.package_type)
        report = await backend.uninstall(record)
        if report.ok:
            self.store.remove(record.install_id)
        else:
            logger.warning(
                "Keeping record for %s: %d artifact(s) not removed",
                record.install_id,
                len(report.failed),
            )
        return report
