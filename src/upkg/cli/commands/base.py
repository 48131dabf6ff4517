"""Base command handler for upkg CLI commands."""

from abc import ABC, abstractmethod
from argparse import Namespace

from upkg.backends import BackendContext, BackendRegistry
from upkg.config.records import InstallRecordStore


class BaseCommandHandler(ABC):
    """Abstract base class for all command handlers.

    CLIRunner acts as the composition root: it builds the backend
    context once and injects it, together with the registry and record
    store, into every handler.
    """

    def __init__(
        self,
        context: BackendContext,
        registry: BackendRegistry | None = None,
        store: InstallRecordStore | None = None,
    ) -> None:
        """Initialize the command handler with shared dependencies.

        Args:
            context: Paths, command runner and desktop settings
            registry: Backend registry (built from context if omitted)
            store: Install record store (built from context if omitted)

        """
        self.context = context
        self.registry = registry or BackendRegistry.create_default(context)
        self.store = store or InstallRecordStore(context.paths.records_dir)

    @abstractmethod
    async def execute(self, args: Namespace) -> int:
        """Execute the command.

        Returns:
            Process exit code

        """
