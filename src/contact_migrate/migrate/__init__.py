"""Contact export and reconciliation pipelines.

Public API for exporting contacts from a source directory into an
intermediate record file, and reconciling that file against a
destination directory.

Architecture
------------
Both pipelines share one record model.  The importer treats the record
file as the source of truth and writes only what differs:

- ``models``      -- ``ContactRecord``, ``FieldDifference``,
  ``RecordResult``, ``MigrationReport``: core data contracts.
- ``comparator``  -- pure field comparison and payload projection.
- ``engine``      -- ``ReconciliationEngine``: one import pass.
- ``mapper``      -- ``RecordMapper``: canonical fields <-> directory
  attributes.
- ``exporter``    -- ``Exporter``: source directory -> ``RecordSet``.
- ``record_set``  -- intermediate file read/write.
- ``reporter``    -- human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from contact_migrate.core.session import directory_session
    from contact_migrate.migrate import (
        ReconciliationEngine,
        format_run_summary,
        load_record_set,
    )

    record_set = load_record_set(Path("contacts.json"))

    with directory_session(dest_config, "destination") as directory:
        engine = ReconciliationEngine(directory, dry_run=True)
        report = engine.run(record_set.records)

    print(format_run_summary(report))
"""

from .comparator import (
    build_create_payload,
    build_update_payload,
    compare_attributes,
    compare_records,
    normalize_value,
)
from .engine import ReconciliationEngine
from .exporter import Exporter, ExportResult
from .mapper import RecordMapper
from .models import (
    ContactRecord,
    FieldDifference,
    MigrationReport,
    PlannedAction,
    RecordOutcome,
    RecordProvenance,
    RecordResult,
)
from .record_set import RecordSet, dump_record_set, load_record_set
from .reporter import (
    format_dry_run_preview,
    format_export_summary,
    format_run_summary,
    report_to_json,
)

__all__ = [
    "ContactRecord",
    "ExportResult",
    "Exporter",
    "FieldDifference",
    "MigrationReport",
    "PlannedAction",
    "ReconciliationEngine",
    "RecordMapper",
    "RecordOutcome",
    "RecordProvenance",
    "RecordResult",
    "RecordSet",
    "build_create_payload",
    "build_update_payload",
    "compare_attributes",
    "compare_records",
    "dump_record_set",
    "format_dry_run_preview",
    "format_export_summary",
    "format_run_summary",
    "load_record_set",
    "normalize_value",
    "report_to_json",
]
