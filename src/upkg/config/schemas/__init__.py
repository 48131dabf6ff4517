"""JSON Schema validation for upkg's persisted state.

Usage:
    from upkg.config.schemas import (
        SchemaValidationError,
        validate_install_record,
    )

    try:
        validate_install_record(record.to_dict(), record.install_id)
    except SchemaValidationError as e:
        print(f"Validation failed: {e}")
"""

from upkg.config.schemas.validator import (
    RecordValidator,
    SchemaValidationError,
    validate_install_record,
)

__all__ = [
    "RecordValidator",
    "SchemaValidationError",
    "validate_install_record",
]
