"""Top-level package for upkg.

Author: 2025 upkg contributors
License: GPL-3.0
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("upkg")
except PackageNotFoundError:
    # Fallback for development environments where package isn't installed
    __version__ = "dev"
