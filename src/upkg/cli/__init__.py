"""Command-line interface for upkg."""

from upkg.cli.runner import CLIRunner

__all__ = ["CLIRunner"]
