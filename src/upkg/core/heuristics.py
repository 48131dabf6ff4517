"""Main-executable selection for extracted package trees.

Tarballs and system packages ship many executables (helpers, crash
reporters, sandboxes, bundled tools). Candidates are scored with simple
path, name and size heuristics and the highest score wins.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from upkg.constants import ELF_MAGIC, SHEBANG
from upkg.logger import get_logger
from upkg.utils.naming import generate_name_variants

logger = get_logger(__name__)

BONUS_NAMES = frozenset(
    {
        "wine", "wine64", "run", "start", "launch",
        "main", "app", "game", "application",
    }
)  # fmt: skip

PENALTY_PATTERNS = (
    "chrome-sandbox", "crashpad", "minidump", "update", "uninstall",
    "helper", "crash", "debugger", "sandbox", "nacl", "xdg", "installer",
    "setup", "config", "daemon", "service", "agent", "monitor", "reporter",
    "dump", "winedbg", "wineboot", "winecfg", "wineconsole", "wineserver",
    "widl", "wmc", "wrc", "winebuild", "winegcc", "wineg++", "winecpp",
    "winemaker", "winefile", "winemine", "winepath",
)  # fmt: skip

# Build-machine paths baked into broken launcher scripts
INVALID_SCRIPT_PATHS = (
    "/home/runner/",
    "/home/builder/",
    "/tmp/build/",
    "/opt/build/",
    "/workspace/",
    "/build/",
)

LARGE_BINARY_BYTES = 10 * 1024 * 1024
MEDIUM_BINARY_BYTES = 1024 * 1024
SMALL_BINARY_BYTES = 100 * 1024
TINY_BINARY_BYTES = 1024
MAX_SCRIPT_SCAN_BYTES = 10 * 1024


def _is_shared_library(filename: str) -> bool:
    return (
        filename.endswith((".so", ".dylib", ".dll"))
        or ".so." in filename
    )


def _read_prefix(path: Path, size: int) -> bytes:
    try:
        with path.open("rb") as f:
            return f.read(size)
    except OSError:
        return b""


def find_executables(root: Path) -> list[Path]:
    """List executable ELF binaries and scripts under ``root``.

    Symlinks and shared libraries are skipped. The result is sorted so
    ties are broken deterministically.
    """
    found: list[Path] = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in filenames:
            path = Path(dirpath) / filename
            if path.is_symlink() or _is_shared_library(filename.lower()):
                continue
            try:
                mode = path.stat().st_mode
            except OSError:
                continue
            if not mode & 0o111:
                continue
            header = _read_prefix(path, 4)
            if header.startswith((ELF_MAGIC, SHEBANG)):
                found.append(path)
    return sorted(found)


@dataclass(frozen=True)
class ExecutableScore:
    """A candidate executable with its score."""

    path: Path
    score: int


class ExecutableScorer:
    """Scores candidate executables against an application name."""

    def score(self, path: Path, base_name: str, root: Path) -> int:
        """Score one candidate; higher means more likely the main binary."""
        filename = path.name.lower()
        relative = path.relative_to(root).as_posix()
        depth = len(relative.split("/"))

        score = (11 - depth) * 10
        if depth > 10:
            score -= 50

        variants = generate_name_variants(base_name)
        if any(filename in (v, f"{v}.exe") for v in variants):
            score += 120
        if any(len(v) >= 3 and v in filename for v in variants):
            score += 60

        if filename in BONUS_NAMES:
            score += 80

        score -= 200 * sum(1 for p in PENALTY_PATTERNS if p in filename)

        if filename.startswith("lib"):
            score -= 80
        if _is_shared_library(filename):
            score -= 400

        try:
            size = path.stat().st_size
        except OSError:
            size = None
        if size is not None:
            if size > LARGE_BINARY_BYTES:
                score += 30
            elif size > MEDIUM_BINARY_BYTES:
                score += 10
            elif size < SMALL_BINARY_BYTES:
                score -= 20
                if size < TINY_BINARY_BYTES:
                    score -= 50

        if "/bin/" in f"/{relative.lower()}":
            score += 20

        if self._is_invalid_wrapper_script(path):
            score -= 300

        return score

    def _is_invalid_wrapper_script(self, path: Path) -> bool:
        try:
            if path.stat().st_size > MAX_SCRIPT_SCAN_BYTES:
                return False
        except OSError:
            return False
        content = _read_prefix(path, 1024)
        if not content.startswith(SHEBANG):
            return False
        text = content.decode("utf-8", errors="ignore")
        for pattern in INVALID_SCRIPT_PATHS:
            if pattern in text:
                logger.debug(
                    "Wrapper script %s references build path %s", path, pattern
                )
                return True
        return False

    def choose_best(
        self, candidates: list[Path], base_name: str, root: Path
    ) -> Path | None:
        """Return the highest-scoring candidate, or None if there are none."""
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0]

        scored = [
            ExecutableScore(path, self.score(path, base_name, root))
            for path in candidates
        ]
        for item in scored:
            logger.debug("Executable candidate %s scored %d", item.path, item.score)
        # max() keeps the first of equal scores; candidates are sorted
        return max(scored, key=lambda item: item.score).path
