"""Configuration management - settings, paths and install records.

This package provides:
- GlobalConfigManager: INI configuration management (from global.py)
- Paths / InstallPaths: upkg's own paths and the install directories
- InstallRecordStore: persisted install records (from records.py)
"""

# Import from global module (avoiding keyword conflict)
import importlib

from upkg.config.paths import InstallPaths, Paths
from upkg.config.records import InstallRecordStore
from upkg.domain.types import GlobalConfig

_global_module = importlib.import_module("upkg.config.global")
GlobalConfigManager = _global_module.GlobalConfigManager

__all__ = [
    "GlobalConfig",
    "GlobalConfigManager",
    "InstallPaths",
    "InstallRecordStore",
    "Paths",
]
