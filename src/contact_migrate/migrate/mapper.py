"""Record mapper between directory attributes and ``ContactRecord``.

Translates between canonical field names (``ContactRecord``) and the
attribute names of an Active Directory / Exchange style directory.

Mapping rules:

1. **Attribute map** -- each canonical field maps to exactly one
   directory attribute.  ``DEFAULT_ATTRIBUTE_MAP`` can be overridden per
   field.
2. **Scalar values** -- multi-valued attributes collapse to their first
   non-empty value; booleans, numbers, and bytes become strings.
3. **Routing address** -- ``targetAddress`` carries an ``SMTP:`` prefix in
   the directory and none in the canonical record.
4. **Flags** -- directory ``TRUE``/``FALSE`` become ``"True"``/``"False"``.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from .models import (
    CUSTOM_FIELDS,
    EXTENSION_CUSTOM_FIELDS,
    FLAG_FIELDS,
    IDENTITY_FIELDS,
    MUTABLE_FIELDS,
    ContactRecord,
    RecordProvenance,
    canonical_flag,
)

DEFAULT_ATTRIBUTE_MAP: dict[str, str] = {
    "external_address": "targetAddress",
    "alias": "mailNickname",
    "display_name": "displayName",
    "name": "cn",
    "first_name": "givenName",
    "last_name": "sn",
    "initials": "initials",
    "title": "title",
    "company": "company",
    "department": "department",
    "office": "physicalDeliveryOfficeName",
    "phone": "telephoneNumber",
    "mobile_phone": "mobile",
    "home_phone": "homePhone",
    "fax": "facsimileTelephoneNumber",
    "pager": "pager",
    "street_address": "streetAddress",
    "city": "l",
    "state_or_province": "st",
    "postal_code": "postalCode",
    "country_or_region": "co",
    "post_office_box": "postOfficeBox",
    "notes": "info",
    "web_page": "wWWHomePage",
    "assistant_name": "msExchAssistantName",
    **{
        field: f"extensionAttribute{i}"
        for i, field in enumerate(CUSTOM_FIELDS, start=1)
    },
    **{
        field: f"msExchExtensionCustomAttribute{i}"
        for i, field in enumerate(EXTENSION_CUSTOM_FIELDS, start=1)
    },
    "hidden_from_address_lists": "msExchHideFromAddressLists",
    "require_sender_authentication": "msExchRequireAuthToSendTo",
}

_ADDRESS_PREFIX = "SMTP:"


def to_scalar(value: Any) -> str | None:
    """Collapse a raw directory value to a scalar string (or ``None``)."""
    match value:
        case None:
            return None
        case list() | tuple():
            for item in value:
                scalar = to_scalar(item)
                if scalar is not None and scalar.strip():
                    return scalar
            return None
        case bool():
            return "True" if value else "False"
        case bytes() | bytearray():
            return bytes(value).decode("utf-8", errors="replace")
        case datetime():
            return value.isoformat()
        case _:
            return str(value)


class RecordMapper:
    """Map directory attribute sets to canonical field maps and back.

    Args:
        overrides: Optional ``{canonical_field: directory_attribute}``
            entries replacing the defaults.

    Raises:
        ValueError: If an override names an unknown canonical field.
    """

    def __init__(self, overrides: Mapping[str, str] | None = None) -> None:
        unknown = set(overrides or {}) - set(DEFAULT_ATTRIBUTE_MAP)
        if unknown:
            raise ValueError(
                f"Unknown contact fields in attribute map: {sorted(unknown)}"
            )
        self._to_directory = {**DEFAULT_ATTRIBUTE_MAP, **(overrides or {})}
        self._from_directory = {
            attr.lower(): field for field, attr in self._to_directory.items()
        }

    # ------------------------------------------------------------------
    # Attribute names
    # ------------------------------------------------------------------

    def attribute_for(self, field: str) -> str:
        """Directory attribute name of a canonical field."""
        return self._to_directory[field]

    def directory_attributes(self, fields=None) -> list[str]:
        """Directory attribute names for *fields* (default: all fields)."""
        names = fields if fields is not None else self._to_directory
        return [self._to_directory[f] for f in names]

    # ------------------------------------------------------------------
    # Directory -> canonical
    # ------------------------------------------------------------------

    def from_directory(
        self, raw: Mapping[str, Any], fields=None
    ) -> dict[str, str | None]:
        """Convert a raw directory attribute map to canonical fields.

        Attribute names are matched case-insensitively.  Fields absent
        from *raw* are returned as ``None``.
        """
        wanted = tuple(fields) if fields is not None else (
            IDENTITY_FIELDS + MUTABLE_FIELDS
        )
        values: dict[str, str | None] = {f: None for f in wanted}
        for attr, raw_value in raw.items():
            field = self._from_directory.get(attr.lower())
            if field is None or field not in values:
                continue
            values[field] = self._canonical_value(field, to_scalar(raw_value))
        return values

    def to_record(
        self,
        details: Mapping[str, str | None],
        provenance: RecordProvenance | None = None,
    ) -> ContactRecord:
        """Build a ``ContactRecord`` from canonical field values."""
        known = {
            f: details.get(f) for f in IDENTITY_FIELDS + MUTABLE_FIELDS
        }
        return ContactRecord(**known, provenance=provenance)

    # ------------------------------------------------------------------
    # Canonical -> directory
    # ------------------------------------------------------------------

    def to_directory(self, values: Mapping[str, str]) -> dict[str, str]:
        """Convert canonical field values to directory attribute values."""
        return {
            self._to_directory[field]: self._directory_value(field, value)
            for field, value in values.items()
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _canonical_value(field: str, value: str | None) -> str | None:
        if value is None:
            return None
        if field == "external_address":
            if value[: len(_ADDRESS_PREFIX)].upper() == _ADDRESS_PREFIX:
                return value[len(_ADDRESS_PREFIX) :]
            return value
        if field in FLAG_FIELDS:
            return canonical_flag(value)
        return value

    @staticmethod
    def _directory_value(field: str, value: str) -> str:
        if field == "external_address":
            if value[: len(_ADDRESS_PREFIX)].upper() == _ADDRESS_PREFIX:
                return value
            return f"{_ADDRESS_PREFIX}{value}"
        if field in FLAG_FIELDS:
            flag = canonical_flag(value)
            return flag.upper() if flag in ("True", "False") else value
        return value
