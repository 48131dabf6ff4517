"""Package format backends sharing one install engine."""

from upkg.backends.base import BackendContext, PackageStrategy
from upkg.backends.engine import Backend, UninstallReport, record_artifacts
from upkg.backends.registry import BackendRegistry

__all__ = [
    "Backend",
    "BackendContext",
    "BackendRegistry",
    "PackageStrategy",
    "UninstallReport",
    "record_artifacts",
]
