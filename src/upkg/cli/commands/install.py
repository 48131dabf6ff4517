"""Install command coordinator."""

from argparse import Namespace
from pathlib import Path

from upkg.core.services import InstallService
from upkg.domain.types import InstallOptions

from .base import BaseCommandHandler


class InstallHandler(BaseCommandHandler):
    """Thin coordinator for the install command."""

    async def execute(self, args: Namespace) -> int:
        """Install the package file named on the command line."""
        options = InstallOptions(
            custom_name=args.custom_name,
            force=args.force,
            skip_desktop=args.skip_desktop,
            skip_wayland_env=args.skip_wayland_env,
        )
        service = InstallService(self.registry, self.store)
        record = await service.install(Path(args.path).expanduser(), options)

        version = f" {record.version}" if record.version else ""
        print(f"✅ Installed {record.name}{version} ({record.install_id})")
        print(f"   Location: {record.install_path}")
        if record.metadata.wrapper_script:
            print(f"   Launcher: {record.metadata.wrapper_script}")
        for desktop_file in record.desktop_files:
            print(f"   Desktop entry: {desktop_file}")
        return 0
