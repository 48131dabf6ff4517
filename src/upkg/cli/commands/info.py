"""Info command coordinator."""

from argparse import Namespace

from upkg.exceptions import PackageNotFoundError
from upkg.utils.naming import normalize_filename

from .base import BaseCommandHandler


class InfoHandler(BaseCommandHandler):
    """Shows the details of one recorded install."""

    async def execute(self, args: Namespace) -> int:
        """Print the stored record of the named package.

        Raises:
            PackageNotFoundError: If nothing is recorded under the name

        """
        record = self.store.get(normalize_filename(args.name))
        if record is None:
            msg = "not installed"
            raise PackageNotFoundError(msg, args.name)

        metadata = record.metadata
        rows = [
            ("Name", record.name),
            ("ID", record.install_id),
            ("Type", record.package_type.value),
            ("Version", record.version or "unknown"),
            ("Installed", record.install_date),
            ("Location", record.install_path),
            ("Source", record.original_file),
            ("Launcher", metadata.wrapper_script),
            ("Desktop entry", ", ".join(record.desktop_files)),
            ("Icons", ", ".join(metadata.icon_files)),
            ("Wayland", metadata.wayland_support.value),
            ("Comment", metadata.comment),
        ]
        for label, value in rows:
            if value:
                print(f"{label + ':':<14} {value}")
        return 0
