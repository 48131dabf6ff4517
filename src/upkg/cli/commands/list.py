"""List command coordinator."""

from argparse import Namespace
from functools import cmp_to_key

import orjson

from upkg.domain.types import InstallRecord
from upkg.utils.version import compare_versions

from .base import BaseCommandHandler


def _compare_by_version(left: InstallRecord, right: InstallRecord) -> int:
    # Unversioned packages sort last
    if not left.version or not right.version:
        return (not left.version) - (not right.version)
    return compare_versions(left.version, right.version)


def filter_records(
    records: list[InstallRecord],
    package_type: str | None = None,
    name: str | None = None,
) -> list[InstallRecord]:
    """Keep records of ``package_type`` whose name or id contains ``name``."""
    needle = name.lower() if name else None
    return [
        record
        for record in records
        if (package_type is None or record.package_type.value == package_type)
        and (
            needle is None
            or needle in record.name.lower()
            or needle in record.install_id
        )
    ]


def sort_records(records: list[InstallRecord], key: str) -> list[InstallRecord]:
    """Sort by name, type, version (ascending) or date (newest first)."""
    by_name = sorted(records, key=lambda record: record.name.lower())
    if key == "type":
        return sorted(by_name, key=lambda record: record.package_type.value)
    if key == "date":
        return sorted(by_name, key=lambda record: record.install_date, reverse=True)
    if key == "version":
        return sorted(by_name, key=cmp_to_key(_compare_by_version))
    return by_name


class ListHandler(BaseCommandHandler):
    """Shows the recorded installs."""

    async def execute(self, args: Namespace) -> int:
        """Print one line per installed package, or the records as JSON."""
        records = sort_records(
            filter_records(
                self.store.list_records(), args.package_type, args.name_filter
            ),
            args.sort,
        )
        if args.json:
            data = [record.to_dict() for record in records]
            print(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode())
            return 0

        if not records:
            filtered = args.package_type or args.name_filter
            print("No packages match" if filtered else "No packages installed")
            return 0

        width = max(len(record.install_id) for record in records)
        for record in records:
            print(
                f"{record.install_id:<{width}}  "
                f"{record.package_type.value:<8}  "
                f"{record.version or '-'}"
            )
        return 0
