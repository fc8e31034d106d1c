"""Exception hierarchy for contact_migrate.

Two classes of failure exist:

* **Critical** -- abort the whole run: ``DirectorySessionError`` (cannot
  bind), ``RecordSetError`` (intermediate file unreadable),
  ``SessionLostError`` (session severed mid-run, surfaced by the engine
  as ``RunAbortedError``).
* **Per-record** -- every other ``DirectoryError``.  The engine catches
  these at the record boundary, counts the record as failed, and moves on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .migrate.models import MigrationReport


class MigrationError(Exception):
    """Base class for all contact_migrate errors."""


class RecordSetError(MigrationError):
    """The intermediate record file could not be read or parsed."""


class DirectoryError(MigrationError):
    """Base class for failures reported by a directory adapter."""


class DirectorySessionError(DirectoryError):
    """A session with the directory could not be established."""


class NotFoundError(DirectoryError):
    """The requested directory object does not exist."""


class DirectoryValidationError(DirectoryError):
    """The directory rejected a create or update request."""


class DirectoryConnectionError(DirectoryError):
    """A directory call failed in transit."""


class SessionLostError(DirectoryConnectionError):
    """The directory session was severed; no further calls can succeed."""


class RunAbortedError(MigrationError):
    """An import run stopped before processing every record.

    Attributes:
        report: The partial report covering records processed so far.
    """

    def __init__(self, message: str, report: MigrationReport) -> None:
        super().__init__(message)
        self.report = report
