"""Export pipeline: source directory -> record mapper -> record set.

Enumerating the source is all-or-nothing: if the listing itself fails
the export aborts.  Reading one contact's details is per-record: a
failure is logged and counted, and the export continues.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from contact_migrate.core.directory import SourceDirectory
from contact_migrate.errors import DirectoryError, SessionLostError
from contact_migrate.migrate.mapper import RecordMapper
from contact_migrate.migrate.models import ContactRecord, RecordProvenance
from contact_migrate.migrate.record_set import RecordSet
from contact_migrate.validators import validate_record

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """Outcome of one export run.

    Attributes:
        record_set: Records read from the source, in enumeration order.
        enumerated: Handles returned by the source listing.
        failed: ``(handle, error)`` pairs for contacts that could not be read.
        missing_address: Exported records without an external address.
    """

    record_set: RecordSet
    enumerated: int = 0
    failed: list[tuple[str, str]] = field(default_factory=list)
    missing_address: int = 0

    @property
    def exported(self) -> int:
        return len(self.record_set.records)


class Exporter:
    """Read every contact from a source directory into a ``RecordSet``.

    Args:
        source: Source directory adapter (an open session).
        mapper: Builds ``ContactRecord`` objects from attribute maps.
    """

    def __init__(
        self,
        source: SourceDirectory,
        mapper: RecordMapper | None = None,
    ) -> None:
        self.source = source
        self.mapper = mapper or RecordMapper()

    def export(
        self,
        exported_by: str | None = None,
        source_system: str | None = None,
    ) -> ExportResult:
        """Enumerate the source and map every contact.

        Args:
            exported_by: Principal recorded as provenance.
            source_system: Source identifier recorded as provenance.

        Returns:
            An ``ExportResult`` with the record set and counters.

        Raises:
            DirectoryError: If the source listing cannot be enumerated.
        """
        exported_at = datetime.now(timezone.utc).isoformat()
        provenance = RecordProvenance(
            exported_at=exported_at,
            exported_by=exported_by,
            source_system=source_system,
        )

        records: list[ContactRecord] = []
        failed: list[tuple[str, str]] = []
        enumerated = 0
        missing_address = 0

        for handle in self.source.list_all_contacts():
            enumerated += 1
            try:
                details = self.source.get_contact_details(handle)
            except SessionLostError:
                raise
            except DirectoryError as exc:
                logger.error("Cannot read contact %s: %s", handle, exc)
                failed.append((str(handle), str(exc)))
                continue

            record = self.mapper.to_record(details, provenance)
            valid, reason = validate_record(record)
            if not valid:
                missing_address += 1
                logger.warning(
                    "Exported %s (%s): %s; the import will reject it",
                    record.label,
                    handle,
                    reason,
                )
            else:
                logger.info(
                    "Exported %s (%s)", record.label, record.external_address
                )
            records.append(record)

        logger.info(
            "Export complete: %d enumerated, %d exported, %d failed",
            enumerated,
            len(records),
            len(failed),
        )

        return ExportResult(
            record_set=RecordSet(
                exported_at=exported_at,
                exported_by=exported_by,
                source_system=source_system,
                records=records,
            ),
            enumerated=enumerated,
            failed=failed,
            missing_address=missing_address,
        )
