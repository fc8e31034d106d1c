"""Intermediate record file: serialization and strict loading.

The exporter writes one JSON document per run; the importer reads it
back.  Layout::

    {
      "schema_version": 1,
      "exported_at": "2026-01-01T00:00:00+00:00",
      "exported_by": "EXAMPLE\\\\svc-export",
      "source_system": "ldaps://old-dc.example.com",
      "records": [{"external_address": "a@x.com", ...}, ...]
    }

Loading rules:

* **Schema version** -- a missing ``schema_version`` is read as version 1
  (with a warning); newer versions are rejected.
* **Legacy layout** -- a bare top-level list of records is accepted.
* **Strict records** -- each record must be an object whose values are
  strings or null.  Unknown keys are ignored.
* **Presence** -- records without ``external_address`` are loaded but
  reported by ``RecordSet.unmigratable()``; the engine fails them.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ValidationError

from contact_migrate.errors import RecordSetError
from contact_migrate.file_handler import (
    read_file_with_encoding,
    write_file_atomic,
)
from contact_migrate.migrate.models import ContactRecord
from contact_migrate.validators import validate_record

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class RecordSet(BaseModel):
    """A serialized set of contact records.

    Attributes:
        schema_version: Layout version of the file.
        exported_at: ISO 8601 timestamp of the export run.
        exported_by: Principal that ran the export.
        source_system: Identifier of the source directory.
        records: Records in export order.
    """

    schema_version: int = SCHEMA_VERSION
    exported_at: str | None = None
    exported_by: str | None = None
    source_system: str | None = None
    records: list[ContactRecord] = []

    model_config = {"frozen": True}

    def unmigratable(self) -> list[tuple[int, ContactRecord, str]]:
        """Records that fail the required-field check.

        Returns:
            ``(index, record, reason)`` tuples in file order.
        """
        rejected = []
        for index, record in enumerate(self.records):
            valid, reason = validate_record(record)
            if not valid:
                rejected.append((index, record, reason))
        return rejected


# ------------------------------------------------------------------
# Writing
# ------------------------------------------------------------------


def dump_record_set(record_set: RecordSet, path: Path) -> int:
    """Write *record_set* to *path* atomically as indented JSON.

    Returns:
        Number of bytes written.
    """
    document = record_set.model_dump(mode="json")
    text = json.dumps(document, indent=2, ensure_ascii=False) + "\n"
    return write_file_atomic(path, text)


# ------------------------------------------------------------------
# Reading
# ------------------------------------------------------------------


def load_record_set(path: Path) -> RecordSet:
    """Read and validate an intermediate record file.

    Raises:
        RecordSetError: If the file cannot be read, is not valid JSON,
            has an unsupported schema version, or holds malformed
            records.
    """
    try:
        content, encoding = read_file_with_encoding(path)
    except OSError as exc:
        raise RecordSetError(f"Cannot read {path}: {exc}") from exc
    logger.debug("Read %s (%s)", path, encoding)

    try:
        document = json.loads(content)
    except json.JSONDecodeError as exc:
        raise RecordSetError(f"{path} is not valid JSON: {exc}") from exc

    record_set = parse_record_set(document, source=str(path))

    for index, record, reason in record_set.unmigratable():
        logger.warning(
            "Record %d (%s) cannot be migrated: %s",
            index,
            record.label,
            reason,
        )
    return record_set


def parse_record_set(document: object, source: str = "<document>") -> RecordSet:
    """Validate a decoded JSON document into a ``RecordSet``."""
    if isinstance(document, list):
        logger.warning(
            "%s has no header (legacy layout); assuming schema version %d",
            source,
            SCHEMA_VERSION,
        )
        document = {"records": document}

    if not isinstance(document, dict):
        raise RecordSetError(
            f"{source}: expected a JSON object or list, "
            f"got {type(document).__name__}"
        )

    version = document.get("schema_version")
    if version is None:
        logger.warning(
            "%s has no schema_version; assuming %d", source, SCHEMA_VERSION
        )
        document = {**document, "schema_version": SCHEMA_VERSION}
    elif not isinstance(version, int) or isinstance(version, bool):
        raise RecordSetError(
            f"{source}: schema_version must be an integer, got {version!r}"
        )
    elif version > SCHEMA_VERSION:
        raise RecordSetError(
            f"{source}: schema version {version} is newer than the "
            f"supported version {SCHEMA_VERSION}"
        )

    records = document.get("records")
    if not isinstance(records, list):
        raise RecordSetError(f"{source}: 'records' must be a list")

    try:
        return RecordSet(**document)
    except ValidationError as exc:
        raise RecordSetError(
            f"{source}: malformed record data: {_summarize(exc)}"
        ) from exc


def _summarize(exc: ValidationError, limit: int = 5) -> str:
    """First few validation problems as ``location: message`` pairs."""
    problems = [
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
        for err in exc.errors()[:limit]
    ]
    more = exc.error_count() - len(problems)
    if more > 0:
        problems.append(f"... and {more} more")
    return "; ".join(problems)
