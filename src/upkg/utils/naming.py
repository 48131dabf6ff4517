"""Name derivation helpers.

Turns arbitrary package file names and embedded metadata into stable,
filesystem-safe identifiers and human-readable display names.
"""

import re

ARCH_SUFFIX_TOKENS = frozenset(
    {
        "x86", "x64", "x86_64", "x86-64", "amd64", "arm", "arm64",
        "aarch64", "armhf", "armv7", "armv7l", "armv6", "armel",
        "riscv64", "ppc64le", "s390x", "i386", "i686", "ia32", "sparc",
    }
)  # fmt: skip

PLATFORM_SUFFIX_TOKENS = frozenset(
    {
        "linux", "win", "windows", "mac", "macos", "osx", "darwin",
        "unix", "gnu", "glibc", "musl", "appimage", "portable", "release",
        "cli", "gtk", "qt", "flatpak", "tarball", "tar",
    }
)  # fmt: skip

RELEASE_SUFFIX_PREFIXES = (
    "rc",
    "beta",
    "alpha",
    "nightly",
    "snapshot",
    "preview",
)

COMMON_ACRONYMS = frozenset(
    {
        "API", "SDK", "IDE", "CLI", "GUI", "UI", "UX", "HTML", "CSS",
        "JS", "JSON", "XML", "SQL", "HTTP", "HTTPS", "FTP", "SSH", "VPN",
        "DNS", "URL", "ESR", "LTS", "RC", "DVD", "CD", "USB", "RAM",
        "CPU", "GPU", "AI", "ML", "AR", "VR", "OS", "DB", "VM",
    }
)  # fmt: skip

# Longest first so ".tar.gz" wins over ".gz"
PACKAGE_EXTENSIONS = (
    ".tar.gz",
    ".tar.xz",
    ".tar.bz2",
    ".tar.zst",
    ".appimage",
    ".tgz",
    ".tbz2",
    ".txz",
    ".tar",
    ".zip",
    ".deb",
    ".rpm",
)

_INVALID_FILENAME_CHARS = re.compile(r"[^a-z0-9._-]")
_REPEATED_DASHES = re.compile(r"-{2,}")
_VERSION_PATTERNS = (
    re.compile(r"[-_ ]v?(\d+(?:\.\d+)+)"),
    re.compile(r"[-_ ]v(\d+)(?:[-_.]|$)"),
)


def normalize_filename(name: str) -> str:
    """Convert a name into a lowercase, filesystem-safe identifier.

    Spaces and underscores become dashes, anything outside
    ``[a-z0-9._-]`` is dropped and repeated dashes are collapsed.

    Example:
        >>> normalize_filename("My Cool_App!")
        'my-cool-app'

    """
    lowered = name.strip().lower().replace(" ", "-").replace("_", "-")
    cleaned = _INVALID_FILENAME_CHARS.sub("", lowered)
    return _REPEATED_DASHES.sub("-", cleaned).strip("-")


def strip_package_extension(filename: str) -> str:
    """Remove a known package extension, case-insensitively."""
    lowered = filename.lower()
    for extension in PACKAGE_EXTENSIONS:
        if lowered.endswith(extension):
            return filename[: -len(extension)]
    return filename


def _looks_numeric(token: str) -> bool:
    return any(c.isdigit() for c in token) and all(
        c.isdigit() or c == "." for c in token
    )


def _is_suffix_token(token: str) -> bool:
    token = token.strip(" -_.").lower()
    if not token:
        return False
    if _looks_numeric(token):
        return True
    if token.startswith("v") and len(token) > 1 and _looks_numeric(token[1:]):
        return True
    if token in ARCH_SUFFIX_TOKENS or token.replace("_", "-") in (
        ARCH_SUFFIX_TOKENS
    ):
        return True
    if token in PLATFORM_SUFFIX_TOKENS:
        return True
    return token.startswith(RELEASE_SUFFIX_PREFIXES)


def clean_app_name(base_name: str) -> str:
    """Strip trailing version, architecture, platform and release tokens.

    Example:
        >>> clean_app_name("Obsidian-1.5.3-x86_64")
        'Obsidian'

    """
    tokens = base_name.split("-")
    while len(tokens) > 1 and _is_suffix_token(tokens[-1]):
        tokens.pop()
    return "-".join(tokens)


def generate_name_variants(base_name: str) -> list[str]:
    """Return lookup variants of a name, most specific first.

    Used when matching executables inside an extracted tree: the full
    normalized name, progressively suffix-trimmed forms, then each form
    without dashes.
    """
    normalized = base_name.lower().strip("-_.")
    if not normalized:
        return []

    variants: list[str] = []

    def add_variant(value: str) -> None:
        value = value.strip("-_.")
        if value and value not in variants:
            variants.append(value)

    add_variant(normalized)
    tokens = normalized.split("-")
    while len(tokens) > 1 and _is_suffix_token(tokens[-1]):
        tokens.pop()
        add_variant("-".join(tokens))

    for variant in list(variants):
        add_variant(variant.replace("-", ""))

    return variants


def format_display_name(normalized_name: str) -> str:
    """Title-case a normalized name, keeping known acronyms uppercase.

    Example:
        >>> format_display_name("firefox-esr")
        'Firefox ESR'

    """
    words = normalized_name.replace("-", " ").replace("_", " ").split()
    formatted = []
    for word in words:
        upper = word.upper()
        if upper in COMMON_ACRONYMS:
            formatted.append(upper)
        else:
            formatted.append(word[0].upper() + word[1:].lower())
    return " ".join(formatted)


def extract_version_from_filename(filename: str) -> str | None:
    """Find a version number embedded in a package file name.

    Example:
        >>> extract_version_from_filename("app-v2.4.1-x86_64.AppImage")
        '2.4.1'

    """
    stem = strip_package_extension(filename)
    for pattern in _VERSION_PATTERNS:
        match = pattern.search(stem)
        if match:
            return match.group(1)
    return None
