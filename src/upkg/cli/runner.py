"""CLI runner for upkg.

Orchestrates the execution of CLI commands by routing parsed
arguments to the appropriate command handlers, and turns upkg errors
into a one-line message and a category-specific exit code.
"""

from argparse import Namespace

from upkg import __version__
from upkg.backends import BackendContext
from upkg.config import GlobalConfigManager, InstallPaths, Paths
from upkg.core.locking import LockManager
from upkg.exceptions import (
    AlreadyInstalledError,
    ExtractionError,
    IntegrationError,
    PackageNotFoundError,
    SafetyViolationError,
    UnsupportedPackageError,
    UpkgError,
    ValidationError,
)
from upkg.infrastructure.commands import SubprocessRunner
from upkg.logger import get_logger, update_logger_from_config

from .commands import (
    BaseCommandHandler,
    DoctorHandler,
    InfoHandler,
    InstallHandler,
    ListHandler,
    RemoveHandler,
)
from .parser import CLIParser

logger = get_logger(__name__)

EXIT_FAILURE = 1
# Most specific classes first; subclasses share their parent's code
EXIT_CODES: list[tuple[type[UpkgError], int]] = [
    (PackageNotFoundError, 2),
    (UnsupportedPackageError, 3),
    (ValidationError, 4),
    (AlreadyInstalledError, 5),
    (ExtractionError, 6),
    (SafetyViolationError, 7),
    (IntegrationError, 8),
]

# Commands that change the installed set hold the process lock
MUTATING_COMMANDS = frozenset({"install", "uninstall", "remove"})


def exit_code_for(error: UpkgError) -> int:
    """Map an error to the exit code of its category."""
    for error_type, code in EXIT_CODES:
        if isinstance(error, error_type):
            return code
    return EXIT_FAILURE


class CLIRunner:
    """CLI command runner and orchestrator."""

    def __init__(self, context: BackendContext | None = None) -> None:
        """Initialize CLI runner with shared dependencies.

        Args:
            context: Prebuilt backend context; loaded from settings.conf
                when omitted

        """
        self._context = context

    @property
    def context(self) -> BackendContext:
        """Backend context, built from settings.conf on first use."""
        if self._context is None:
            config = GlobalConfigManager().load_global_config()
            update_logger_from_config()
            self._context = BackendContext(
                paths=InstallPaths.from_config(config),
                runner=SubprocessRunner(),
                desktop=config["desktop"],
            )
        return self._context

    def _create_handler(self, command: str) -> BaseCommandHandler:
        handlers: dict[str, type[BaseCommandHandler]] = {
            "install": InstallHandler,
            "uninstall": RemoveHandler,
            "remove": RemoveHandler,
            "list": ListHandler,
            "info": InfoHandler,
            "doctor": DoctorHandler,
        }
        return handlers[command](self.context)

    async def run(self, argv: list[str] | None = None) -> int:
        """Run the CLI application.

        Args:
            argv: Command-line arguments (defaults to sys.argv[1:])

        Returns:
            Process exit code

        """
        args = CLIParser(argv).parse_args()

        # Global: --version prints the package version and exits early.
        if args.version:
            print(__version__)
            return 0

        if not args.command:
            print("❌ No command specified. Use --help.")
            return EXIT_FAILURE

        try:
            return await self._execute_command(args)
        except UpkgError as e:
            logger.debug("Command %s failed: %r", args.command, e)
            print(f"❌ {e}")
            return exit_code_for(e)
        except KeyboardInterrupt:
            print("\n⏹️  Operation cancelled by user")
            return EXIT_FAILURE

    async def _execute_command(self, args: Namespace) -> int:
        handler = self._create_handler(args.command)
        if args.command not in MUTATING_COMMANDS:
            return await handler.execute(args)

        async with LockManager(Paths.lock_file()):
            return await handler.execute(args)
