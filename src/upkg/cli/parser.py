"""CLI argument parser for upkg.

Handles parsing of command-line arguments and provides a clean
interface for defining CLI commands and their options.
"""

import argparse
from argparse import Namespace

from upkg.domain.types import PackageType

SORT_KEYS = ("name", "type", "date", "version")


class CLIParser:
    """Command-line argument parser for upkg."""

    def __init__(self, argv: list[str] | None = None) -> None:
        """Initialize the CLI parser.

        Args:
            argv: Arguments to parse (defaults to sys.argv[1:])

        """
        self.argv = argv

    def parse_args(self) -> Namespace:
        """Parse command-line arguments.

        Returns:
            Namespace: Parsed arguments namespace.

        """
        parser = self.create_parser()
        return parser.parse_args(self.argv)

    def create_parser(self) -> argparse.ArgumentParser:
        """Build the main parser with global options and subcommands."""
        parser = argparse.ArgumentParser(
            prog="upkg",
            description="upkg - user-local package installer",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Install a package file (AppImage, deb, rpm, tarball, zip or binary)
  %(prog)s install ~/Downloads/Obsidian-1.5.3.AppImage
  %(prog)s install ./tool-linux-x64.tar.gz --name tool

  # Reinstall over an existing install
  %(prog)s install ./app_2.0_amd64.deb --force

  # Manage installed packages
  %(prog)s list --type appimage --sort date
  %(prog)s info obsidian
  %(prog)s uninstall obsidian tool
  %(prog)s uninstall --all --dry-run

  # Check external tools and installed files
  %(prog)s doctor
            """,
        )
        # Long form only, so it never collides with subcommand flags
        parser.add_argument(
            "--version",
            action="store_true",
            help="Show upkg version and exit",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands"
        )
        self._add_install_command(subparsers)
        self._add_uninstall_command(subparsers)
        self._add_list_command(subparsers)
        self._add_info_command(subparsers)
        self._add_doctor_command(subparsers)
        return parser

    def _add_install_command(self, subparsers) -> None:
        install_parser = subparsers.add_parser(
            "install",
            help="Install a local package file",
        )
        install_parser.add_argument("path", help="Package file to install")
        install_parser.add_argument(
            "--name",
            dest="custom_name",
            help="Application name to install under",
        )
        install_parser.add_argument(
            "--force",
            action="store_true",
            help="Replace an existing install with the same name",
        )
        install_parser.add_argument(
            "--skip-desktop",
            action="store_true",
            help="Do not create a desktop entry",
        )
        install_parser.add_argument(
            "--skip-wayland-env",
            action="store_true",
            help="Do not add Wayland environment variables to the launcher",
        )

    def _add_uninstall_command(self, subparsers) -> None:
        uninstall_parser = subparsers.add_parser(
            "uninstall",
            aliases=["remove"],
            help="Uninstall installed packages",
        )
        uninstall_parser.add_argument(
            "names",
            nargs="*",
            help="Install ids or names of installed packages",
        )
        uninstall_parser.add_argument(
            "--all",
            action="store_true",
            help="Uninstall every recorded package",
        )
        uninstall_parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be removed without removing anything",
        )

    def _add_list_command(self, subparsers) -> None:
        list_parser = subparsers.add_parser(
            "list", help="List installed packages"
        )
        list_parser.add_argument(
            "--type",
            dest="package_type",
            choices=[package_type.value for package_type in PackageType],
            help="Only show packages of this type",
        )
        list_parser.add_argument(
            "--name",
            dest="name_filter",
            help="Only show packages whose name contains this text",
        )
        list_parser.add_argument(
            "--sort",
            choices=SORT_KEYS,
            default="name",
            help="Sort order (default: name)",
        )
        list_parser.add_argument(
            "--json",
            action="store_true",
            help="Print the install records as JSON",
        )

    def _add_info_command(self, subparsers) -> None:
        info_parser = subparsers.add_parser(
            "info", help="Show details of an installed package"
        )
        info_parser.add_argument("name", help="Name of an installed package")

    def _add_doctor_command(self, subparsers) -> None:
        doctor_parser = subparsers.add_parser(
            "doctor",
            help="Check tools, install directories and installed packages",
        )
        doctor_parser.add_argument(
            "--fix",
            action="store_true",
            help="Create missing install directories",
        )
