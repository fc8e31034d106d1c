"""LDAP directory adapter (Active Directory / Exchange mail contacts).

Implements both ``SourceDirectory`` and ``DestinationDirectory`` with
``ldap3``.  Contacts are ``objectClass=contact`` entries below a base DN;
handles are distinguished names.

Error translation:

* socket and session failures (``LDAPCommunicationError``) ->
  ``SessionLostError``
* other ``LDAPException`` -> ``DirectoryConnectionError``
* a rejected add / modify -> ``DirectoryValidationError``
* ``noSuchObject`` -> ``NotFoundError``
"""

from __future__ import annotations

import logging
import ssl
from collections.abc import Callable, Iterator, Mapping
from typing import Any

from ldap3 import (
    BASE,
    MODIFY_REPLACE,
    NONE,
    SUBTREE,
    Connection,
    Server,
    Tls,
)
from ldap3.core.exceptions import LDAPCommunicationError, LDAPException
from ldap3.utils.conv import escape_filter_chars
from ldap3.utils.dn import escape_rdn

from ..config import DirectoryConfig
from ..errors import (
    DirectoryConnectionError,
    DirectorySessionError,
    DirectoryValidationError,
    NotFoundError,
    SessionLostError,
)
from ..migrate.mapper import RecordMapper
from ..migrate.models import IDENTITY_FIELDS, MUTABLE_FIELDS

logger = logging.getLogger(__name__)

CONTACT_OBJECT_CLASSES = ["top", "person", "organizationalPerson", "contact"]

_NO_SUCH_OBJECT = 32
_PAGED_RESULTS_OID = "1.2.840.113556.1.4.319"


class LdapDirectory:
    """Mail contacts stored in an LDAP directory.

    Args:
        connection: An ``ldap3.Connection`` (bound by ``open()``).
        base_dn: Container holding the contacts.
        mapper: Canonical field <-> attribute mapper.
        search_filter: Optional extra LDAP filter ANDed into every search.
        page_size: Page size for enumeration.
    """

    def __init__(
        self,
        connection: Connection,
        base_dn: str,
        mapper: RecordMapper | None = None,
        search_filter: str | None = None,
        page_size: int = 500,
    ) -> None:
        self.connection = connection
        self.base_dn = base_dn
        self.mapper = mapper or RecordMapper()
        self.search_filter = search_filter or ""
        self.page_size = page_size

    @classmethod
    def from_config(
        cls, config: DirectoryConfig, mapper: RecordMapper | None = None
    ) -> LdapDirectory:
        """Build an (unbound) adapter from a ``DirectoryConfig``."""
        if mapper is None:
            mapper = RecordMapper(config.attribute_map)
        tls = Tls(
            validate=ssl.CERT_NONE if config.insecure else ssl.CERT_REQUIRED
        )
        server = Server(
            config.url,
            get_info=NONE,
            tls=tls,
            connect_timeout=config.timeout,
        )
        connection = Connection(
            server,
            user=config.username,
            password=config.password,
            receive_timeout=config.timeout,
            raise_exceptions=False,
        )
        return cls(
            connection,
            config.base_dn,
            mapper=mapper,
            search_filter=config.search_filter,
            page_size=config.page_size,
        )

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Bind the connection.

        Raises:
            DirectorySessionError: If the bind fails.
        """
        try:
            bound = self.connection.bind()
        except LDAPException as exc:
            raise DirectorySessionError(
                f"Cannot connect to directory: {exc}"
            ) from exc
        if not bound:
            raise DirectorySessionError(
                f"Bind failed: {self._last_error()}"
            )

    def close(self) -> None:
        """Unbind the connection; unbind errors are logged, not raised."""
        try:
            self.connection.unbind()
        except LDAPException as exc:
            logger.warning("Error while unbinding: %s", exc)

    # ------------------------------------------------------------------
    # SourceDirectory
    # ------------------------------------------------------------------

    def list_all_contacts(self) -> Iterator[str]:
        """Yield the DN of every contact below ``base_dn``, one page at a time.

        Each page's DNs and cookie are captured before yielding, so callers
        may use the connection for other searches between items.

        Raises:
            DirectoryConnectionError: If any page cannot be retrieved.
            SessionLostError: If the connection drops.
        """
        cookie = None
        while True:
            ok = self._call(
                self.connection.search,
                search_base=self.base_dn,
                search_filter=self._contact_filter(),
                search_scope=SUBTREE,
                attributes=[],
                paged_size=self.page_size,
                paged_cookie=cookie,
            )
            if not ok and self._result_code() not in (0, None):
                raise DirectoryConnectionError(
                    f"Cannot enumerate {self.base_dn}: {self._last_error()}"
                )
            dns = [entry["dn"] for entry in self._entries()]
            cookie = self._paged_cookie()
            yield from dns
            if not cookie:
                return

    def get_contact_details(self, handle: str) -> dict[str, str | None]:
        """Return identity and mutable attributes of the contact at *handle*."""
        raw = self._read_entry(handle, IDENTITY_FIELDS + MUTABLE_FIELDS)
        return self.mapper.from_directory(raw)

    # ------------------------------------------------------------------
    # DestinationDirectory
    # ------------------------------------------------------------------

    def find_by_external_address(self, address: str) -> str | None:
        """Return the DN of the contact routed to *address*, or ``None``."""
        target = escape_filter_chars(f"SMTP:{address}")
        mail = escape_filter_chars(address)
        search_filter = self._contact_filter(
            f"(|(targetAddress={target})(mail={mail}))"
        )
        ok = self._call(
            self.connection.search,
            search_base=self.base_dn,
            search_filter=search_filter,
            search_scope=SUBTREE,
            attributes=[],
        )
        if not ok:
            # A successful search with no entries also returns False.
            if self._result_code() in (0, None):
                return None
            raise DirectoryConnectionError(
                f"Search for {address} failed: {self._last_error()}"
            )

        matches = self._entries()
        if not matches:
            return None
        if len(matches) > 1:
            logger.warning(
                "%d contacts match %s; using %s",
                len(matches),
                address,
                matches[0]["dn"],
            )
        return matches[0]["dn"]

    def get_mutable_attributes(self, handle: str) -> dict[str, str | None]:
        """Return the mutable attributes of the contact at *handle*."""
        raw = self._read_entry(handle, MUTABLE_FIELDS)
        return self.mapper.from_directory(raw, MUTABLE_FIELDS)

    def create(
        self,
        identity: Mapping[str, str],
        attributes: Mapping[str, str],
    ) -> str:
        """Add a contact entry and return its DN."""
        cn = (
            identity.get("name")
            or identity.get("display_name")
            or identity.get("alias")
            or identity["external_address"]
        )
        dn = f"CN={escape_rdn(cn)},{self.base_dn}"

        values = {**identity, **attributes, "name": cn}
        ldap_attributes: dict[str, Any] = self.mapper.to_directory(values)
        ldap_attributes["mail"] = identity["external_address"]

        ok = self._call(
            self.connection.add,
            dn,
            CONTACT_OBJECT_CLASSES,
            ldap_attributes,
        )
        if not ok:
            raise DirectoryValidationError(
                f"Cannot create {dn}: {self._last_error()}"
            )
        logger.debug("Added %s", dn)
        return dn

    def update(self, handle: str, changes: Mapping[str, str]) -> None:
        """Replace the given attributes of the contact at *handle*."""
        modifications = {
            attr: [(MODIFY_REPLACE, [value])]
            for attr, value in self.mapper.to_directory(changes).items()
        }
        ok = self._call(self.connection.modify, handle, modifications)
        if not ok:
            if self._result_code() == _NO_SUCH_OBJECT:
                raise NotFoundError(f"{handle} no longer exists")
            raise DirectoryValidationError(
                f"Cannot modify {handle}: {self._last_error()}"
            )
        logger.debug("Modified %s: %s", handle, ", ".join(modifications))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _contact_filter(self, extra: str = "") -> str:
        return f"(&(objectClass=contact){extra}{self.search_filter})"

    def _read_entry(self, dn: str, fields) -> dict[str, Any]:
        ok = self._call(
            self.connection.search,
            search_base=dn,
            search_filter="(objectClass=*)",
            search_scope=BASE,
            attributes=self.mapper.directory_attributes(fields),
        )
        if not ok:
            # A successful search with no entries also returns False.
            if self._result_code() in (0, None, _NO_SUCH_OBJECT):
                raise NotFoundError(f"{dn} does not exist")
            raise DirectoryConnectionError(
                f"Cannot read {dn}: {self._last_error()}"
            )
        entries = self._entries()
        if not entries:
            raise NotFoundError(f"{dn} does not exist")
        return dict(entries[0].get("attributes", {}))

    def _entries(self) -> list[dict]:
        return [
            e
            for e in (self.connection.response or [])
            if e.get("type") == "searchResEntry"
        ]

    def _call(self, func: Callable[..., Any], *args: Any, **kwargs: Any):
        try:
            return func(*args, **kwargs)
        except LDAPCommunicationError as exc:
            raise SessionLostError(str(exc)) from exc
        except LDAPException as exc:
            raise DirectoryConnectionError(str(exc)) from exc

    def _paged_cookie(self) -> bytes | None:
        controls = (self.connection.result or {}).get("controls") or {}
        paged = controls.get(_PAGED_RESULTS_OID) or {}
        return (paged.get("value") or {}).get("cookie") or None

    def _result_code(self) -> int | None:
        result = self.connection.result or {}
        return result.get("result")

    def _last_error(self) -> str:
        result = self.connection.result or {}
        description = result.get("description") or "unknown error"
        message = result.get("message")
        return f"{description} ({message})" if message else description
