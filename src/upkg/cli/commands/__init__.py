"""Command handlers, one per CLI subcommand."""

from .base import BaseCommandHandler
from .doctor import DoctorHandler
from .info import InfoHandler
from .install import InstallHandler
from .list import ListHandler
from .remove import RemoveHandler

__all__ = [
    "BaseCommandHandler",
    "DoctorHandler",
    "InfoHandler",
    "InstallHandler",
    "ListHandler",
    "RemoveHandler",
]
