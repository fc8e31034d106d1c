"""Pydantic models shared by the export and import pipelines.

Defines the core data contracts used across all migration modules:

- ``ContactRecord``: Canonical schema of one mail contact.
- ``RecordProvenance``: Where and when a record was exported.
- ``FieldDifference``: One differing field found by the comparator.
- ``RecordOutcome``: Terminal classification of one imported record.
- ``PlannedAction``: What a dry run would have done with a record.
- ``RecordResult``: Outcome of reconciling one record.
- ``MigrationReport``: Aggregate results for a full import run.

All models are frozen (immutable) so the engine can never modify an
imported record while reconciling it.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, field_validator

# ---------------------------------------------------------------------------
# Field sets (declared order is the comparison and payload order)
# ---------------------------------------------------------------------------

IDENTITY_FIELDS: tuple[str, ...] = (
    "external_address",
    "alias",
    "display_name",
    "name",
)

PERSONAL_FIELDS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "initials",
    "title",
    "company",
    "department",
    "office",
)

PHONE_FIELDS: tuple[str, ...] = (
    "phone",
    "mobile_phone",
    "home_phone",
    "fax",
    "pager",
)

POSTAL_FIELDS: tuple[str, ...] = (
    "street_address",
    "city",
    "state_or_province",
    "postal_code",
    "country_or_region",
    "post_office_box",
)

TEXT_FIELDS: tuple[str, ...] = (
    "notes",
    "web_page",
    "assistant_name",
)

CUSTOM_FIELDS: tuple[str, ...] = tuple(
    f"custom_attribute_{i}" for i in range(1, 16)
)

EXTENSION_CUSTOM_FIELDS: tuple[str, ...] = tuple(
    f"extension_custom_attribute_{i}" for i in range(1, 6)
)

FLAG_FIELDS: tuple[str, ...] = (
    "hidden_from_address_lists",
    "require_sender_authentication",
)

MUTABLE_FIELDS: tuple[str, ...] = (
    PERSONAL_FIELDS
    + PHONE_FIELDS
    + POSTAL_FIELDS
    + TEXT_FIELDS
    + CUSTOM_FIELDS
    + EXTENSION_CUSTOM_FIELDS
    + FLAG_FIELDS
)

# Attributes the destination accepts in the create call itself; the
# remaining mutable fields follow in an update right after creation.
CREATION_FIELDS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "initials",
)


def canonical_flag(value: str | None) -> str | None:
    """Spell boolean flag values as ``"True"`` / ``"False"``.

    Any casing of ``true`` / ``false`` is accepted; other values are
    returned unchanged.
    """
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered == "true":
        return "True"
    if lowered == "false":
        return "False"
    return value


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class RecordProvenance(BaseModel):
    """Export metadata attached to a record.

    Informational only: never compared and never written back.

    Attributes:
        exported_at: ISO 8601 timestamp of the export run.
        exported_by: Principal that ran the export.
        source_system: Identifier of the source directory.
    """

    exported_at: str | None = None
    exported_by: str | None = None
    source_system: str | None = None

    model_config = {"frozen": True}


class ContactRecord(BaseModel):
    """Canonical representation of one mail contact.

    Every attribute is an optional scalar string.  ``None``, ``""`` and
    whitespace-only values are equivalent for comparison purposes.
    """

    # identity
    external_address: str | None = None
    alias: str | None = None
    display_name: str | None = None
    name: str | None = None

    # personal
    first_name: str | None = None
    last_name: str | None = None
    initials: str | None = None
    title: str | None = None
    company: str | None = None
    department: str | None = None
    office: str | None = None

    # phone
    phone: str | None = None
    mobile_phone: str | None = None
    home_phone: str | None = None
    fax: str | None = None
    pager: str | None = None

    # postal
    street_address: str | None = None
    city: str | None = None
    state_or_province: str | None = None
    postal_code: str | None = None
    country_or_region: str | None = None
    post_office_box: str | None = None

    # free text
    notes: str | None = None
    web_page: str | None = None
    assistant_name: str | None = None

    # custom attributes
    custom_attribute_1: str | None = None
    custom_attribute_2: str | None = None
    custom_attribute_3: str | None = None
    custom_attribute_4: str | None = None
    custom_attribute_5: str | None = None
    custom_attribute_6: str | None = None
    custom_attribute_7: str | None = None
    custom_attribute_8: str | None = None
    custom_attribute_9: str | None = None
    custom_attribute_10: str | None = None
    custom_attribute_11: str | None = None
    custom_attribute_12: str | None = None
    custom_attribute_13: str | None = None
    custom_attribute_14: str | None = None
    custom_attribute_15: str | None = None

    # extended custom attributes
    extension_custom_attribute_1: str | None = None
    extension_custom_attribute_2: str | None = None
    extension_custom_attribute_3: str | None = None
    extension_custom_attribute_4: str | None = None
    extension_custom_attribute_5: str | None = None

    # visibility / security flags
    hidden_from_address_lists: str | None = None
    require_sender_authentication: str | None = None

    provenance: RecordProvenance | None = None

    model_config = {"frozen": True, "extra": "ignore"}

    @field_validator(*FLAG_FIELDS)
    @classmethod
    def _canonical_flags(cls, value: str | None) -> str | None:
        return canonical_flag(value)

    @property
    def label(self) -> str:
        """Name used for this record in log lines and reports."""
        for value in (
            self.display_name,
            self.name,
            self.alias,
            self.external_address,
        ):
            if value and value.strip():
                return value
        return "<unnamed contact>"

    def identity(self) -> dict[str, str | None]:
        """Identity field values in declared order."""
        return {f: getattr(self, f) for f in IDENTITY_FIELDS}

    def attributes(self) -> dict[str, str | None]:
        """Mutable attribute values in declared order."""
        return {f: getattr(self, f) for f in MUTABLE_FIELDS}


class FieldDifference(BaseModel):
    """One field whose normalized values differ.

    Attributes:
        field: Canonical field name.
        existing: Value currently held by the destination.
        new: Value carried by the imported record.
    """

    field: str
    existing: str | None = None
    new: str | None = None

    model_config = {"frozen": True}

    def as_tuple(self) -> tuple[str, str | None, str | None]:
        return (self.field, self.existing, self.new)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class RecordOutcome(str, Enum):
    """Terminal state of one imported record."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


class PlannedAction(str, Enum):
    """Write a dry run decided on but did not perform."""

    CREATE = "create"
    UPDATE = "update"


class RecordResult(BaseModel):
    """Result of reconciling one imported record.

    Attributes:
        external_address: Join key of the record (may be empty when the
            record failed validation).
        label: Human-readable record name.
        outcome: Terminal classification.
        planned: Write a dry run would have made, if any.
        differences: Field differences found against the destination.
        payload: Fields sent (or, in a dry run, that would be sent).
        error: Failure cause when ``outcome`` is FAILED.
        partial: True when a created record could not be fully populated.
    """

    external_address: str = ""
    label: str
    outcome: RecordOutcome
    planned: PlannedAction | None = None
    differences: list[FieldDifference] = []
    payload: dict[str, str] = {}
    error: str | None = None
    partial: bool = False

    model_config = {"frozen": True}


class MigrationReport(BaseModel):
    """Aggregate report for a full import run.

    Attributes:
        source_file: Intermediate file the records came from.
        dry_run: Whether this was a dry run (no changes applied).
        results: Per-record results in processing order.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run finished.
    """

    source_file: str | None = None
    dry_run: bool = False
    results: list[RecordResult] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with(self, outcome: RecordOutcome) -> list[RecordResult]:
        return [r for r in self.results if r.outcome == outcome]

    @property
    def created(self) -> list[RecordResult]:
        return self._with(RecordOutcome.CREATED)

    @property
    def updated(self) -> list[RecordResult]:
        return self._with(RecordOutcome.UPDATED)

    @property
    def skipped(self) -> list[RecordResult]:
        return self._with(RecordOutcome.SKIPPED)

    @property
    def failed(self) -> list[RecordResult]:
        return self._with(RecordOutcome.FAILED)

    @property
    def would_create(self) -> list[RecordResult]:
        """Dry-run results that would have been created."""
        return [
            r for r in self.results if r.planned == PlannedAction.CREATE
        ]

    @property
    def would_update(self) -> list[RecordResult]:
        """Dry-run results that would have been updated."""
        return [
            r for r in self.results if r.planned == PlannedAction.UPDATE
        ]

    @property
    def partial_writes(self) -> list[RecordResult]:
        """Failed results that left a partially populated contact behind."""
        return [r for r in self.results if r.partial]

    def counts(self) -> dict[str, int]:
        """Aggregate counters for the run."""
        return {
            "total": len(self.results),
            "created": len(self.created),
            "updated": len(self.updated),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
        }
