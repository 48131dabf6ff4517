"""Exception classes for upkg operations.

Each install phase raises its own error class so the CLI can report
detection, validation, extraction and integration failures distinctly.
"""


class UpkgError(Exception):
    """Base exception for upkg operations."""

    error_prefix: str = "Operation failed"

    def __init__(self, message: str, target: str | None = None) -> None:
        """Initialize error with message and optional target.

        Args:
            message: Error message describing the failure.
            target: Optional name of the package or path that failed.

        """
        super().__init__(message)
        self.message = message
        self.target = target

    def __str__(self) -> str:
        """Return formatted error message."""
        if self.target:
            return f"{self.error_prefix} for '{self.target}': {self.message}"
        return f"{self.error_prefix}: {self.message}"


class ConfigurationError(UpkgError):
    """Raised when configuration or home directory resolution fails."""

    error_prefix = "Configuration error"


class PackageNotFoundError(UpkgError):
    """Raised when the source package does not exist."""

    error_prefix = "Package not found"


class UnsupportedPackageError(UpkgError):
    """Raised when no backend claims a package file."""

    error_prefix = "Unsupported package"


class ValidationError(UpkgError):
    """Raised when a name, version or path fails validation."""

    error_prefix = "Validation failed"


class NameValidationError(ValidationError):
    """Raised when a derived application identifier is unsafe."""

    error_prefix = "Invalid application name"


class AlreadyInstalledError(UpkgError):
    """Raised when the destination exists and force was not requested."""

    error_prefix = "Already installed"


class ExtractionError(UpkgError):
    """Raised when a package payload cannot be extracted."""

    error_prefix = "Extraction failed"


class ExtractionToolMissingError(ExtractionError):
    """Raised when extraction needs an external tool that is not installed."""

    error_prefix = "Extraction tool not available"

    def __init__(
        self,
        message: str,
        target: str | None = None,
        tools: list[str] | None = None,
    ) -> None:
        """Initialize error with the names of the missing tools.

        Args:
            message: Error message describing the failure.
            target: Optional name of the package that failed.
            tools: Names of the external tools that were not found.

        """
        super().__init__(message, target)
        self.tools = tools or []


class SafetyViolationError(UpkgError):
    """Raised when archive content tries to escape its destination."""

    error_prefix = "Unsafe package content"


class InstallationError(UpkgError):
    """Raised when copying the payload into place fails."""

    error_prefix = "Installation failed"


class IntegrationError(UpkgError):
    """Raised when desktop integration of an installed package fails."""

    error_prefix = "Desktop integration failed"


class TransactionStateError(UpkgError):
    """Raised when a transaction is used after it has finished."""

    error_prefix = "Invalid transaction state"


class CommandError(UpkgError):
    """Raised when an external command cannot be run or times out."""

    error_prefix = "Command failed"


class RecordStoreError(UpkgError):
    """Raised when install records cannot be read or written."""

    error_prefix = "Install record error"


class LockError(UpkgError):
    """Raised when the process lock cannot be acquired."""

    error_prefix = "Lock error"

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize lock error with optional underlying cause.

        Args:
            message: Error message describing the failure.
            cause: Original exception raised by the locking call.

        """
        super().__init__(message)
        self.cause = cause
