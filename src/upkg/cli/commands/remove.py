"""Uninstall command coordinator."""

import os
from argparse import Namespace

from upkg.backends import record_artifacts
from upkg.core.services import RemoveService
from upkg.domain.types import InstallRecord
from upkg.exceptions import PackageNotFoundError
from upkg.logger import get_logger

from .base import BaseCommandHandler

logger = get_logger(__name__)


class RemoveHandler(BaseCommandHandler):
    """Thin coordinator for the uninstall command."""

    async def execute(self, args: Namespace) -> int:
        """Uninstall each named package, or every package with ``--all``.

        A name that is not installed is reported and the remaining names
        are still processed. With ``--dry-run`` nothing is removed.
        """
        if args.all and args.names:
            print("❌ Give package names or --all, not both")
            return 1
        if args.all:
            names = self.store.record_ids()
            if not names:
                print("No packages installed")
                return 0
        elif args.names:
            names = args.names
        else:
            print("❌ No packages given. Name packages to uninstall or use --all")
            return 1

        service = RemoveService(self.registry, self.store)
        exit_code = 0
        for name in names:
            try:
                if args.dry_run:
                    self._print_plan(service.find(name))
                    continue
                report = await service.remove(name)
            except PackageNotFoundError as e:
                print(f"❌ {e}")
                exit_code = 2
                continue

            if report.ok:
                print(f"✅ Uninstalled {report.install_id}")
                continue

            exit_code = 1
            print(f"⚠️  Uninstalled {report.install_id} partially")
            for artifact, reason in report.failed:
                print(f"   {artifact}: {reason}")

        if args.dry_run:
            print("No changes were made (dry run)")
        logger.debug("Uninstall finished with exit code %d", exit_code)
        return exit_code

    @staticmethod
    def _print_plan(record: InstallRecord) -> None:
        print(
            f"Would uninstall {record.name} "
            f"({record.install_id}, {record.package_type.value})"
        )
        for artifact in record_artifacts(record):
            note = "" if os.path.lexists(artifact) else " (already missing)"
            print(f"   {artifact}{note}")
