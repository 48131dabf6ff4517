"""Validation of names, versions and environment variables.

Every identifier that ends up in a destination path or in a generated
launcher passes through one of these checks first.
"""

import re

from upkg.constants import MAX_PACKAGE_NAME_LENGTH, MAX_VERSION_LENGTH
from upkg.exceptions import NameValidationError, ValidationError

VALID_PACKAGE_NAME = re.compile(r"^[a-zA-Z0-9._-]+$")
VALID_VERSION = re.compile(r"^[a-zA-Z0-9._+-]+$")
VALID_ENV_VAR_NAME = re.compile(r"^[A-Z_][A-Z0-9_]*$")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")

SUSPICIOUS_NAME_PATTERNS = (
    "../",
    "..\\",
    "~/",
    "/etc/",
    "/bin/",
    "/sbin/",
    "/usr/bin/",
    "/usr/sbin/",
)
DANGEROUS_VERSION_PATTERNS = (
    "..",
    "/",
    "\\",
    ";",
    "&",
    "|",
    "`",
    "$",
    "\n",
    "\r",
)


def validate_package_name(name: str) -> None:
    """Ensure a normalized name is safe to use as a path component.

    Args:
        name: Normalized application identifier

    Raises:
        NameValidationError: If the name is empty, too long, uses
            characters outside the allow-list or looks like a path

    """
    if not name:
        msg = "package name cannot be empty"
        raise NameValidationError(msg)

    if len(name) > MAX_PACKAGE_NAME_LENGTH:
        msg = f"package name too long (max {MAX_PACKAGE_NAME_LENGTH} characters)"
        raise NameValidationError(msg, name)

    if name in {".", ".."}:
        msg = "package name cannot be a relative directory reference"
        raise NameValidationError(msg, name)

    lowered = name.lower()
    for pattern in SUSPICIOUS_NAME_PATTERNS:
        if pattern in lowered:
            msg = f"package name contains suspicious pattern: {pattern}"
            raise NameValidationError(msg, name)

    if not VALID_PACKAGE_NAME.match(name):
        msg = (
            "must contain only alphanumeric, dash, underscore, "
            "or dot characters"
        )
        raise NameValidationError(msg, name)


def validate_version(version: str) -> None:
    """Ensure a version string is short and free of shell metacharacters.

    Raises:
        ValidationError: If the version is unsafe

    """
    if not version:
        msg = "version cannot be empty"
        raise ValidationError(msg)

    if len(version) >= MAX_VERSION_LENGTH:
        msg = f"version string too long (max {MAX_VERSION_LENGTH - 1} characters)"
        raise ValidationError(msg, version[:20])

    if "\x00" in version:
        msg = "version contains null byte"
        raise ValidationError(msg)

    for pattern in DANGEROUS_VERSION_PATTERNS:
        if pattern in version:
            msg = f"version contains dangerous pattern: {pattern!r}"
            raise ValidationError(msg, version)

    if not VALID_VERSION.match(version):
        msg = "version must be alphanumeric with dots, dashes or plus signs"
        raise ValidationError(msg, version)


def validate_environment_variable(name: str, value: str) -> None:
    """Validate one NAME=value pair injected into a launcher.

    Raises:
        ValidationError: If the name is malformed or the value has NUL

    """
    if not name:
        msg = "environment variable name cannot be empty"
        raise ValidationError(msg)

    if not VALID_ENV_VAR_NAME.match(name):
        msg = "invalid environment variable name"
        raise ValidationError(msg, name)

    if "\x00" in value:
        msg = "environment variable value contains null byte"
        raise ValidationError(msg, name)


def sanitize_string(value: str) -> str:
    """Strip control characters (tab and newline are kept)."""
    return _CONTROL_CHARS.sub("", value)
