"""JSON Schema validation for persisted install records."""

from pathlib import Path
from typing import Any

import orjson
from jsonschema import Draft7Validator, ValidationError
from jsonschema.exceptions import best_match

from upkg.logger import get_logger

logger = get_logger(__name__)

SCHEMA_DIR = Path(__file__).parent
INSTALL_RECORD_SCHEMA_PATH = SCHEMA_DIR / "install_record.schema.json"


class SchemaValidationError(Exception):
    """Raised when JSON schema validation fails."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        schema_type: str | None = None,
    ) -> None:
        """Initialize schema validation error.

        Args:
            message: Error message
            path: JSON path where error occurred
            schema_type: Type of schema being validated

        """
        self.path = path
        self.schema_type = schema_type
        super().__init__(message)

    def __str__(self) -> str:
        """Format error message with schema type and path."""
        parts = []
        if self.schema_type:
            parts.append(f"[{self.schema_type}]")
        if self.path:
            parts.append(f"at '{self.path}'")
        if parts:
            return f"{' '.join(parts)}: {super().__str__()}"
        return super().__str__()


def _load_schema(schema_path: Path) -> dict[str, Any]:
    try:
        return orjson.loads(schema_path.read_bytes())  # type: ignore[no-any-return]
    except FileNotFoundError as e:
        msg = f"Schema file not found: {schema_path}"
        raise FileNotFoundError(msg) from e
    except orjson.JSONDecodeError as e:
        msg = f"Invalid JSON in schema file {schema_path}: {e}"
        raise ValueError(msg) from e


def _format_validation_error(error: ValidationError) -> str:
    if error.validator == "required":
        missing = (
            error.message.split("'")[1] if "'" in error.message else "unknown"
        )
        return f"Missing required field: '{missing}'"
    if error.validator == "enum":
        return f"Invalid value. {error.message}"
    if error.validator == "type":
        actual = type(error.instance).__name__
        return f"Expected type '{error.validator_value}', got '{actual}'"
    return error.message


class RecordValidator:
    """Validates install records against the bundled schema."""

    def __init__(self, schema_path: Path = INSTALL_RECORD_SCHEMA_PATH) -> None:
        """Load the schema and build the validator."""
        self._validator = Draft7Validator(_load_schema(schema_path))

    def validate(
        self, record: dict[str, Any], install_id: str | None = None
    ) -> None:
        """Validate one record dictionary.

        Raises:
            SchemaValidationError: If validation fails

        """
        errors = list(self._validator.iter_errors(record))
        if not errors:
            logger.debug("Record validation passed: %s", install_id or "unknown")
            return

        best_error = best_match(errors)
        path = (
            ".".join(str(p) for p in best_error.absolute_path)
            if best_error.absolute_path
            else None
        )
        message = _format_validation_error(best_error)
        if install_id:
            message = f"Invalid install record '{install_id}': {message}"
        raise SchemaValidationError(
            message, path=path, schema_type="install_record"
        )


_validator: RecordValidator | None = None


def get_validator() -> RecordValidator:
    """Get or create the shared validator instance."""
    global _validator
    if _validator is None:
        _validator = RecordValidator()
    return _validator


def validate_install_record(
    record: dict[str, Any], install_id: str | None = None
) -> None:
    """Validate an install record (convenience function).

    Raises:
        SchemaValidationError: If validation fails

    """
    get_validator().validate(record, install_id)
