"""Field comparison and payload projection.

Pure functions only.  The comparator decides *what differs* between a
destination contact and an imported record; the projection helpers
decide *what may be written*.  A field the imported record leaves empty
is reported as a difference but never cleared on the destination.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import NamedTuple

from .models import (
    CREATION_FIELDS,
    IDENTITY_FIELDS,
    MUTABLE_FIELDS,
    ContactRecord,
    FieldDifference,
)


def normalize_value(value: str | None) -> str:
    """Return the comparison form of an attribute value.

    ``None`` and whitespace-only strings collapse to ``""``; any other
    value is returned unchanged.
    """
    if value is None or not value.strip():
        return ""
    return value


def is_empty(value: str | None) -> bool:
    """Return ``True`` if *value* normalizes to the empty value."""
    return normalize_value(value) == ""


# ------------------------------------------------------------------
# Comparison
# ------------------------------------------------------------------


def compare_attributes(
    existing: Mapping[str, str | None],
    imported: Mapping[str, str | None],
    fields: Iterable[str] = MUTABLE_FIELDS,
) -> list[FieldDifference]:
    """Compute the ordered difference set between two attribute maps.

    Fields missing from either mapping count as empty.

    Args:
        existing: Attributes currently held by the destination.
        imported: Attributes of the imported (source of truth) record.
        fields: Field names to compare, in output order.

    Returns:
        One ``FieldDifference`` per field whose normalized values
        differ, in the order of *fields*.
    """
    differences: list[FieldDifference] = []
    for name in fields:
        old = existing.get(name)
        new = imported.get(name)
        if normalize_value(old) != normalize_value(new):
            differences.append(
                FieldDifference(field=name, existing=old, new=new)
            )
    return differences


def compare_records(
    existing: ContactRecord, imported: ContactRecord
) -> list[FieldDifference]:
    """Compare the mutable attributes of two records."""
    return compare_attributes(existing.attributes(), imported.attributes())


# ------------------------------------------------------------------
# Payload projection
# ------------------------------------------------------------------


def project_present(
    values: Mapping[str, str | None], fields: Iterable[str]
) -> dict[str, str]:
    """Keep the present, non-empty values of *fields*, in field order."""
    payload: dict[str, str] = {}
    for name in fields:
        value = values.get(name)
        if not is_empty(value):
            payload[name] = value  # type: ignore[assignment]
    return payload


def build_update_payload(
    differences: Iterable[FieldDifference],
) -> dict[str, str]:
    """Project a difference set into an update payload.

    Differences whose new value is empty are dropped: an update never
    clears a field that already holds a value.
    """
    return {
        d.field: d.new  # type: ignore[misc]
        for d in differences
        if not is_empty(d.new)
    }


def cleared_fields(differences: Iterable[FieldDifference]) -> list[str]:
    """Names of differing fields the update payload leaves untouched."""
    return [d.field for d in differences if is_empty(d.new)]


class CreatePayload(NamedTuple):
    """Values needed to create one contact.

    Attributes:
        identity: Identity fields for the create call.
        attributes: Non-empty attributes accepted by the create call.
        followup: Remaining non-empty attributes, applied by an update
            immediately after creation.
    """

    identity: dict[str, str]
    attributes: dict[str, str]
    followup: dict[str, str]


def build_create_payload(record: ContactRecord) -> CreatePayload:
    """Split a record into the create call and its follow-up update."""
    values = {**record.identity(), **record.attributes()}
    return CreatePayload(
        identity=project_present(values, IDENTITY_FIELDS),
        attributes=project_present(values, CREATION_FIELDS),
        followup=project_present(
            values,
            (f for f in MUTABLE_FIELDS if f not in CREATION_FIELDS),
        ),
    )
