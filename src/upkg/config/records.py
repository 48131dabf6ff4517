"""Persistent store of install records.

Each record lives in ``<records_dir>/<install_id>.json``. Records are
validated against the install record schema both when written and when
read back, so a hand-edited or truncated file is reported instead of
silently driving an uninstall.
"""

import os
from pathlib import Path
from typing import Any

import orjson

from upkg.config.schemas import SchemaValidationError, validate_install_record
from upkg.constants import RECORD_SCHEMA_VERSION
from upkg.domain.types import InstallRecord
from upkg.exceptions import NameValidationError, RecordStoreError
from upkg.logger import get_logger
from upkg.utils.validation import validate_package_name

logger = get_logger(__name__)


class InstallRecordStore:
    """Reads and writes install records keyed by install id."""

    def __init__(self, records_dir: Path) -> None:
        """Initialize store.

        Args:
            records_dir: Directory holding one JSON file per record

        """
        self.records_dir = records_dir

    def _record_file(self, install_id: str) -> Path | None:
        try:
            validate_package_name(install_id)
        except NameValidationError:
            return None
        return self.records_dir / f"{install_id}.json"

    @staticmethod
    def _serialize(record: InstallRecord) -> dict[str, Any]:
        return {"schema_version": RECORD_SCHEMA_VERSION, **record.to_dict()}

    def save(self, record: InstallRecord) -> Path:
        """Create or replace the record for ``record.install_id``.

        Returns:
            Path of the record file

        Raises:
            RecordStoreError: If the record is invalid or cannot be written

        """
        record_file = self._record_file(record.install_id)
        if record_file is None:
            msg = "invalid install id"
            raise RecordStoreError(msg, record.install_id)

        data = self._serialize(record)
        try:
            validate_install_record(data, record.install_id)
            self.records_dir.mkdir(parents=True, exist_ok=True)
            tmp_file = record_file.with_suffix(".json.tmp")
            tmp_file.write_bytes(
                orjson.dumps(
                    data, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS
                )
            )
            os.replace(tmp_file, record_file)
        except SchemaValidationError as e:
            msg = f"cannot save invalid record: {e}"
            raise RecordStoreError(msg, record.install_id) from e
        except OSError as e:
            msg = f"failed to write record: {e}"
            raise RecordStoreError(msg, record.install_id) from e

        logger.debug("Saved install record %s", record_file)
        return record_file

    def get(self, install_id: str) -> InstallRecord | None:
        """Load a record.

        Returns:
            The record, or None if no record exists for ``install_id``

        Raises:
            RecordStoreError: If the record file is unreadable or invalid

        """
        record_file = self._record_file(install_id)
        if record_file is None or not record_file.is_file():
            return None

        try:
            data = orjson.loads(record_file.read_bytes())
            validate_install_record(data, install_id)
            return InstallRecord.from_dict(data)
        except orjson.JSONDecodeError as e:
            msg = f"invalid JSON in record: {e}"
            raise RecordStoreError(msg, install_id) from e
        except SchemaValidationError as e:
            msg = f"invalid record: {e}"
            raise RecordStoreError(msg, install_id) from e
        except OSError as e:
            msg = f"failed to read record: {e}"
            raise RecordStoreError(msg, install_id) from e

    def exists(self, install_id: str) -> bool:
        """Return True if a record file exists for ``install_id``."""
        record_file = self._record_file(install_id)
        return record_file is not None and record_file.is_file()

    def record_ids(self) -> list[str]:
        """Return the ids of every stored record file, sorted."""
        if not self.records_dir.is_dir():
            return []
        return sorted(path.stem for path in self.records_dir.glob("*.json"))

    def list_records(self) -> list[InstallRecord]:
        """Return every readable record sorted by install id.

        Unreadable records are logged and skipped so one corrupt file
        does not hide the rest.
        """
        records: list[InstallRecord] = []
        for install_id in self.record_ids():
            try:
                record = self.get(install_id)
            except RecordStoreError as e:
                logger.warning("Skipping record: %s", e)
                continue
            if record is not None:
                records.append(record)
        return records

    def remove(self, install_id: str) -> bool:
        """Delete a record.

        Returns:
            True if a record was removed, False if none existed

        Raises:
            RecordStoreError: If the file exists but cannot be deleted

        """
        record_file = self._record_file(install_id)
        if record_file is None:
            return False
        try:
            record_file.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            msg = f"failed to remove record: {e}"
            raise RecordStoreError(msg, install_id) from e
        logger.debug("Removed install record %s", record_file)
        return True
