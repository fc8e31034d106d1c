"""Directory adapter interfaces.

The export pipeline reads through a ``SourceDirectory`` and the
reconciliation engine writes through a ``DestinationDirectory``.  Both
exchange attribute maps keyed by the canonical ``ContactRecord`` field
names; translating to a concrete directory schema is the adapter's job.

Handles are opaque to callers.  The LDAP adapter uses distinguished
names.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, Protocol, runtime_checkable

Handle = Any
Attributes = dict[str, str | None]


@runtime_checkable
class SourceDirectory(Protocol):
    """Read access to the directory contacts are exported from."""

    def list_all_contacts(self) -> Iterator[Handle]:
        """Yield a handle per contact.

        The sequence is lazy, finite, and cannot be restarted once
        consumed.  Raises ``DirectoryError`` if enumeration fails.
        """
        ...

    def get_contact_details(self, handle: Handle) -> Attributes:
        """Return the full canonical attribute set of one contact."""
        ...


@runtime_checkable
class DestinationDirectory(Protocol):
    """Lookup and write access to the directory contacts are imported into."""

    def find_by_external_address(self, address: str) -> Handle | None:
        """Return the handle of the contact routed to *address*, if any.

        Raises:
            NotFoundError: No match (callers treat this like ``None``).
            DirectoryConnectionError: The lookup failed.
            SessionLostError: The session is gone.
        """
        ...

    def get_mutable_attributes(self, handle: Handle) -> Attributes:
        """Return the mutable attributes of an existing contact."""
        ...

    def create(
        self,
        identity: Mapping[str, str],
        attributes: Mapping[str, str],
    ) -> Handle:
        """Create a contact and return its handle.

        Raises:
            DirectoryValidationError: The directory rejected the request.
            DirectoryConnectionError: The call failed in transit.
        """
        ...

    def update(self, handle: Handle, changes: Mapping[str, str]) -> None:
        """Replace the given attributes of an existing contact.

        Raises:
            DirectoryValidationError: The directory rejected the request.
            DirectoryConnectionError: The call failed in transit.
        """
        ...
