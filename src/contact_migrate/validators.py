"""
Input validation functions for contact records.

Checks run before a record reaches the reconciliation engine so that
unmigratable records are reported instead of sent to the destination.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .migrate.models import ContactRecord


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "External address")
        reason: Description of validation failure (e.g., "is missing")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_external_address(address: str | None) -> tuple[bool, str]:
    """
    Validate the join key of a contact record.

    Args:
        address: The external address to validate

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Must be present
        - Cannot be empty or whitespace-only
    """
    if address is None:
        return (
            False,
            format_validation_error("External address", "is missing"),
        )

    if not address.strip():
        return (
            False,
            format_validation_error("External address", "cannot be empty"),
        )

    return (True, "")


def validate_record(record: ContactRecord) -> tuple[bool, str]:
    """
    Check that a record can take part in reconciliation.

    Args:
        record: The record to validate

    Returns:
        Tuple of (is_valid, error_message).
    """
    return validate_external_address(record.external_address)
