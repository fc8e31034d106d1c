"""Reconciliation engine that drives one import pass.

The ``ReconciliationEngine`` walks an imported record set against a
destination directory.  For each record, strictly in input order, it:

1. Validates the join key (``external_address``).
2. Looks the contact up in the destination.
3. Diffs an existing contact against the record, or creates a new one.
4. Applies the minimal write (or, in a dry run, records what it would
   have written).
5. Classifies the record as created, updated, skipped, or failed.

Error handling is per-record: a single record failure does not abort the
run.  Only a lost directory session stops the pass early.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

from contact_migrate.core.directory import DestinationDirectory, Handle
from contact_migrate.errors import (
    DirectoryError,
    NotFoundError,
    RunAbortedError,
    SessionLostError,
)
from contact_migrate.migrate.comparator import (
    build_create_payload,
    build_update_payload,
    cleared_fields,
    compare_attributes,
)
from contact_migrate.migrate.models import (
    ContactRecord,
    MigrationReport,
    PlannedAction,
    RecordOutcome,
    RecordResult,
)
from contact_migrate.validators import validate_record

logger = logging.getLogger(__name__)


@dataclass
class RunCounters:
    """Run-scoped outcome counters."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.created + self.updated + self.skipped + self.failed

    def record(self, outcome: RecordOutcome) -> None:
        name = outcome.value
        setattr(self, name, getattr(self, name) + 1)


class ReconciliationEngine:
    """Reconcile imported contact records against a destination directory.

    Args:
        directory: Destination adapter (an open session).
        dry_run: If ``True``, compute every decision but make no
            create/update calls.
    """

    def __init__(
        self,
        directory: DestinationDirectory,
        dry_run: bool = False,
    ) -> None:
        self.directory = directory
        self.dry_run = dry_run
        self.counters = RunCounters()

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(
        self,
        records: Iterable[ContactRecord],
        source_file: str | None = None,
    ) -> MigrationReport:
        """Execute a full import pass.

        Args:
            records: Imported records, processed in iteration order.
            source_file: Path of the intermediate file, for the report.

        Returns:
            A ``MigrationReport`` summarising what was (or would be) done.

        Raises:
            RunAbortedError: The destination session was lost.  The
                error carries the report for records processed so far.
        """
        started_at = datetime.now(timezone.utc).isoformat()
        results: list[RecordResult] = []
        self.counters = RunCounters()

        if self.dry_run:
            logger.info("Dry run: no changes will be made")

        for record in records:
            try:
                result = self._reconcile(record)
            except SessionLostError as exc:
                logger.error(
                    "Destination session lost while processing %s: %s",
                    record.label,
                    exc,
                )
                report = self._build_report(
                    results, source_file, started_at
                )
                raise RunAbortedError(
                    f"Destination session lost: {exc}", report
                ) from exc
            except Exception as exc:
                logger.error("Error processing %s: %s", record.label, exc)
                result = self._failed(record, str(exc))

            self.counters.record(result.outcome)
            results.append(result)

        report = self._build_report(results, source_file, started_at)
        logger.info(
            "Processed %d records: %d created, %d updated, "
            "%d skipped, %d failed%s",
            self.counters.total,
            self.counters.created,
            self.counters.updated,
            self.counters.skipped,
            self.counters.failed,
            " (dry run, no changes made)" if self.dry_run else "",
        )
        return report

    # ------------------------------------------------------------------
    # Per-record reconciliation
    # ------------------------------------------------------------------

    def _reconcile(self, record: ContactRecord) -> RecordResult:
        """Classify one record and apply (or plan) its write."""
        valid, reason = validate_record(record)
        if not valid:
            logger.error("Rejected %s: %s", record.label, reason)
            return self._failed(record, reason)

        address = record.external_address or ""
        try:
            handle = self.directory.find_by_external_address(address)
        except NotFoundError:
            handle = None
        except SessionLostError:
            raise
        except DirectoryError as exc:
            logger.error(
                "Lookup failed for %s (%s): %s", record.label, address, exc
            )
            return self._failed(record, f"lookup failed: {exc}")

        if handle is None:
            return self._create(record)
        return self._diff(record, handle)

    def _diff(self, record: ContactRecord, handle: Handle) -> RecordResult:
        """Compare an existing contact with the record and update it."""
        try:
            existing = self.directory.get_mutable_attributes(handle)
        except SessionLostError:
            raise
        except DirectoryError as exc:
            logger.error(
                "Could not read existing contact %s: %s", record.label, exc
            )
            return self._failed(record, f"read failed: {exc}")

        differences = compare_attributes(existing, record.attributes())
        if not differences:
            logger.info("Unchanged: %s", record.label)
            return self._result(record, RecordOutcome.SKIPPED)

        payload = build_update_payload(differences)
        for d in differences:
            if d.field in payload:
                logger.info(
                    "  %s: %s: %r -> %r",
                    record.label,
                    d.field,
                    d.existing,
                    d.new,
                )
        for name in cleared_fields(differences):
            logger.info(
                "  %s: %s: empty in import, keeping existing value",
                record.label,
                name,
            )

        if not payload:
            logger.info(
                "Unchanged: %s (only empty imported values differ)",
                record.label,
            )
            return self._result(
                record, RecordOutcome.SKIPPED, differences=differences
            )

        if self.dry_run:
            logger.info(
                "Would update %s (%d fields)", record.label, len(payload)
            )
            return self._result(
                record,
                RecordOutcome.SKIPPED,
                planned=PlannedAction.UPDATE,
                differences=differences,
                payload=payload,
            )

        try:
            self.directory.update(handle, payload)
        except SessionLostError:
            raise
        except DirectoryError as exc:
            logger.error("Update failed for %s: %s", record.label, exc)
            return self._failed(
                record,
                f"update failed: {exc}",
                differences=differences,
                payload=payload,
            )

        logger.info("Updated %s (%d fields)", record.label, len(payload))
        return self._result(
            record,
            RecordOutcome.UPDATED,
            differences=differences,
            payload=payload,
        )

    def _create(self, record: ContactRecord) -> RecordResult:
        """Create a contact that has no match in the destination."""
        create = build_create_payload(record)
        payload = {**create.identity, **create.attributes, **create.followup}

        if self.dry_run:
            logger.info(
                "Would create %s (%s)", record.label, record.external_address
            )
            return self._result(
                record,
                RecordOutcome.SKIPPED,
                planned=PlannedAction.CREATE,
                payload=payload,
            )

        try:
            handle = self.directory.create(create.identity, create.attributes)
        except SessionLostError:
            raise
        except DirectoryError as exc:
            logger.error("Create failed for %s: %s", record.label, exc)
            return self._failed(
                record, f"create failed: {exc}", payload=payload
            )

        logger.info("Created %s (%s)", record.label, record.external_address)

        if create.followup:
            try:
                self.directory.update(handle, create.followup)
            except SessionLostError:
                raise
            except DirectoryError as exc:
                logger.error(
                    "Created %s but could not set its attributes: %s. "
                    "The contact is only partially populated.",
                    record.label,
                    exc,
                )
                return self._failed(
                    record,
                    f"post-create update failed: {exc}",
                    payload=payload,
                    partial=True,
                )
            for name, value in create.followup.items():
                logger.info("  %s: %s: %r", record.label, name, value)

        return self._result(record, RecordOutcome.CREATED, payload=payload)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _result(
        self, record: ContactRecord, outcome: RecordOutcome, **kwargs
    ) -> RecordResult:
        return RecordResult(
            external_address=record.external_address or "",
            label=record.label,
            outcome=outcome,
            **kwargs,
        )

    def _failed(
        self, record: ContactRecord, error: str, **kwargs
    ) -> RecordResult:
        return self._result(
            record, RecordOutcome.FAILED, error=error, **kwargs
        )

    def _build_report(
        self,
        results: list[RecordResult],
        source_file: str | None,
        started_at: str,
    ) -> MigrationReport:
        return MigrationReport(
            source_file=source_file,
            dry_run=self.dry_run,
            results=results,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )
