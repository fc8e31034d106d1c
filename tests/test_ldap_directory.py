"""Tests for core.ldap_directory -- ldap3 adapter with a mocked connection."""

import logging
import ssl
from unittest.mock import MagicMock, patch

import pytest
from ldap3 import BASE, MOCK_SYNC, MODIFY_REPLACE, SUBTREE, Connection, Server
from ldap3.core.exceptions import (
    LDAPInvalidFilterError,
    LDAPSocketOpenError,
    LDAPSocketReceiveError,
)

from contact_migrate.core.directory import DestinationDirectory, SourceDirectory
from contact_migrate.core.ldap_directory import (
    CONTACT_OBJECT_CLASSES,
    LdapDirectory,
)
from contact_migrate.errors import (
    DirectoryConnectionError,
    DirectorySessionError,
    DirectoryValidationError,
    NotFoundError,
    SessionLostError,
)
from contact_migrate.migrate.exporter import Exporter

BASE_DN = "OU=Contacts,DC=example,DC=org"
PAGED_RESULTS_OID = "1.2.840.113556.1.4.319"


@pytest.fixture
def connection():
    conn = MagicMock()
    conn.response = []
    conn.result = {"result": 0, "description": "success"}
    return conn


@pytest.fixture
def directory(connection):
    return LdapDirectory(connection, BASE_DN)


def _entry(dn, **attributes):
    return {"type": "searchResEntry", "dn": dn, "attributes": attributes}


def _serve_pages(connection, pages, details=None):
    """Answer paged searches from *pages* (one list of DNs per page).

    BASE-scope reads are answered from *details* and carry no paging
    control, like a real server. Returns the recorded search kwargs.
    """
    details = details or {}
    searches = []

    def search(**kwargs):
        searches.append(kwargs)
        if kwargs["search_scope"] == BASE:
            dn = kwargs["search_base"]
            connection.response = [_entry(dn, **details[dn])]
            connection.result = {"result": 0, "description": "success"}
            return True
        index = sum(1 for s in searches if s["search_scope"] == SUBTREE) - 1
        more = index + 1 < len(pages)
        connection.response = [_entry(dn) for dn in pages[index]] + [
            {"type": "searchResRef", "uri": ["ldap://other"]}
        ]
        connection.result = {
            "result": 0,
            "description": "success",
            "controls": {
                PAGED_RESULTS_OID: {
                    "value": {
                        "size": 0,
                        "cookie": b"page-%d" % (index + 1) if more else b"",
                    }
                }
            },
        }
        return bool(pages[index])

    connection.search.side_effect = search
    return searches


class TestProtocols:
    def test_implements_both_interfaces(self, directory):
        assert isinstance(directory, SourceDirectory)
        assert isinstance(directory, DestinationDirectory)


class TestFromConfig:
    @patch("contact_migrate.core.ldap_directory.Connection")
    @patch("contact_migrate.core.ldap_directory.Server")
    def test_builds_server_and_connection(
        self, mock_server, mock_connection, directory_config
    ):
        directory = LdapDirectory.from_config(directory_config)

        server_kwargs = mock_server.call_args[1]
        assert mock_server.call_args[0][0] == "ldaps://dc.example.org"
        assert server_kwargs["tls"].validate == ssl.CERT_REQUIRED
        assert server_kwargs["connect_timeout"] == 30
        conn_kwargs = mock_connection.call_args[1]
        assert conn_kwargs["user"] == "EXAMPLE\\svc-import"
        assert conn_kwargs["raise_exceptions"] is False
        assert directory.base_dn == "OU=Contacts,DC=example,DC=org"
        assert directory.page_size == 500

    def test_certificates_verified_by_default(self, directory_config):
        directory = LdapDirectory.from_config(directory_config)
        assert directory.connection.server.tls.validate == ssl.CERT_REQUIRED

    @patch("contact_migrate.core.ldap_directory.Connection")
    @patch("contact_migrate.core.ldap_directory.Server")
    @patch("contact_migrate.core.ldap_directory.Tls")
    def test_insecure_disables_validation(
        self, mock_tls, mock_server, mock_connection, directory_config
    ):
        directory_config.insecure = True
        LdapDirectory.from_config(directory_config)

        mock_tls.assert_called_once_with(validate=ssl.CERT_NONE)
        assert mock_server.call_args[1]["tls"] is mock_tls.return_value

    @patch("contact_migrate.core.ldap_directory.Connection")
    @patch("contact_migrate.core.ldap_directory.Server")
    def test_attribute_map_reaches_mapper(
        self, mock_server, mock_connection, directory_config
    ):
        directory_config.attribute_map = {"notes": "description"}
        directory = LdapDirectory.from_config(directory_config)
        assert directory.mapper.attribute_for("notes") == "description"


class TestSession:
    def test_open_binds(self, directory, connection):
        connection.bind.return_value = True
        directory.open()
        connection.bind.assert_called_once()

    def test_bind_rejected(self, directory, connection):
        connection.bind.return_value = False
        connection.result = {"result": 49, "description": "invalidCredentials"}
        with pytest.raises(DirectorySessionError, match="invalidCredentials"):
            directory.open()

    def test_bind_unreachable(self, directory, connection):
        connection.bind.side_effect = LDAPSocketOpenError("unable to open socket")
        with pytest.raises(DirectorySessionError, match="Cannot connect"):
            directory.open()

    def test_close_logs_unbind_error(self, directory, connection, caplog):
        connection.unbind.side_effect = LDAPSocketReceiveError("gone")
        with caplog.at_level(logging.WARNING):
            directory.close()
        assert "Error while unbinding" in caplog.text


class TestListAllContacts:
    def test_yields_entry_dns(self, directory, connection):
        searches = _serve_pages(
            connection,
            [[f"CN=A,{BASE_DN}", f"CN=B,{BASE_DN}"]],
        )
        assert list(directory.list_all_contacts()) == [
            f"CN=A,{BASE_DN}",
            f"CN=B,{BASE_DN}",
        ]
        kwargs = searches[0]
        assert kwargs["search_filter"] == "(&(objectClass=contact))"
        assert kwargs["paged_size"] == 500
        assert kwargs["paged_cookie"] is None

    def test_follows_page_cookies(self, directory, connection):
        searches = _serve_pages(
            connection,
            [[f"CN=A,{BASE_DN}"], [f"CN=B,{BASE_DN}"], [f"CN=C,{BASE_DN}"]],
        )

        assert list(directory.list_all_contacts()) == [
            f"CN=A,{BASE_DN}",
            f"CN=B,{BASE_DN}",
            f"CN=C,{BASE_DN}",
        ]
        assert [s["paged_cookie"] for s in searches] == [None, b"page-1", b"page-2"]

    def test_empty_container(self, directory, connection):
        _serve_pages(connection, [[]])
        assert list(directory.list_all_contacts()) == []

    def test_search_filter_is_anded(self, connection):
        directory = LdapDirectory(
            connection, BASE_DN, search_filter="(company=Partner Inc)"
        )
        searches = _serve_pages(connection, [[]])
        list(directory.list_all_contacts())
        assert (
            searches[0]["search_filter"]
            == "(&(objectClass=contact)(company=Partner Inc))"
        )

    def test_missing_base_raises(self, directory, connection):
        connection.search.return_value = False
        connection.result = {
            "result": 32,
            "description": "noSuchObject",
            "message": "",
        }
        with pytest.raises(DirectoryConnectionError, match="noSuchObject"):
            list(directory.list_all_contacts())

    def test_failed_later_page_raises(self, directory, connection):
        _serve_pages(connection, [[f"CN=A,{BASE_DN}"], [f"CN=B,{BASE_DN}"]])
        handles = directory.list_all_contacts()
        assert next(handles) == f"CN=A,{BASE_DN}"

        connection.search.side_effect = None
        connection.search.return_value = False
        connection.result = {"result": 51, "description": "busy"}
        with pytest.raises(DirectoryConnectionError, match="busy"):
            next(handles)

    def test_reads_between_pages_keep_paging(self, directory, connection):
        searches = _serve_pages(
            connection,
            [[f"CN=A,{BASE_DN}"], [f"CN=B,{BASE_DN}"]],
            details={
                f"CN=A,{BASE_DN}": {"targetAddress": "SMTP:a@x.com"},
                f"CN=B,{BASE_DN}": {"targetAddress": "SMTP:b@x.com"},
            },
        )

        result = Exporter(directory).export()

        assert [r.external_address for r in result.record_set.records] == [
            "a@x.com",
            "b@x.com",
        ]
        paged = [s for s in searches if s["search_scope"] == SUBTREE]
        assert [s["paged_cookie"] for s in paged] == [None, b"page-1"]

    def test_connection_lost_mid_enumeration(self, directory, connection):
        _serve_pages(connection, [[f"CN=A,{BASE_DN}"], [f"CN=B,{BASE_DN}"]])
        handles = directory.list_all_contacts()
        assert next(handles) == f"CN=A,{BASE_DN}"

        connection.search.side_effect = LDAPSocketReceiveError("connection reset")
        with pytest.raises(SessionLostError):
            next(handles)

    def test_other_ldap_error(self, directory, connection):
        connection.search.side_effect = LDAPInvalidFilterError("bad filter")
        with pytest.raises(DirectoryConnectionError):
            list(directory.list_all_contacts())


class TestMissingBaseAgainstMockServer:
    """Enumeration against ldap3's in-memory server with a wrong base DN."""

    @pytest.fixture
    def missing_base(self):
        server = Server("fake_dc")
        connection = Connection(server, client_strategy=MOCK_SYNC)
        connection.strategy.add_entry(
            f"CN=A,{BASE_DN}",
            {"objectClass": ["top", "contact"], "targetAddress": "SMTP:a@x.com"},
        )
        connection.bind()
        yield LdapDirectory(connection, "OU=Missing,DC=example,DC=org")
        connection.unbind()

    def test_listing_raises(self, missing_base):
        with pytest.raises(DirectoryConnectionError, match="OU=Missing"):
            list(missing_base.list_all_contacts())

    def test_export_raises(self, missing_base):
        with pytest.raises(DirectoryConnectionError):
            Exporter(missing_base).export()


class TestFind:
    def test_match(self, directory, connection):
        connection.search.return_value = True
        connection.response = [_entry(f"CN=A,{BASE_DN}")]

        assert directory.find_by_external_address("a@x.com") == f"CN=A,{BASE_DN}"
        search_filter = connection.search.call_args[1]["search_filter"]
        assert "(targetAddress=SMTP:a@x.com)" in search_filter
        assert "(mail=a@x.com)" in search_filter

    def test_filter_characters_escaped(self, directory, connection):
        connection.search.return_value = True
        directory.find_by_external_address("a*)(x@x.com")
        search_filter = connection.search.call_args[1]["search_filter"]
        assert "a\\2a\\29\\28x@x.com" in search_filter

    def test_no_match(self, directory, connection):
        connection.search.return_value = False
        assert directory.find_by_external_address("a@x.com") is None

    def test_search_error(self, directory, connection):
        connection.search.return_value = False
        connection.result = {"result": 1, "description": "operationsError"}
        with pytest.raises(DirectoryConnectionError, match="operationsError"):
            directory.find_by_external_address("a@x.com")

    def test_multiple_matches_use_first(self, directory, connection, caplog):
        connection.search.return_value = True
        connection.response = [
            _entry(f"CN=A,{BASE_DN}"),
            _entry(f"CN=A2,{BASE_DN}"),
        ]
        with caplog.at_level(logging.WARNING):
            assert (
                directory.find_by_external_address("a@x.com")
                == f"CN=A,{BASE_DN}"
            )
        assert "2 contacts match" in caplog.text

    def test_session_lost(self, directory, connection):
        connection.search.side_effect = LDAPSocketReceiveError("reset")
        with pytest.raises(SessionLostError):
            directory.find_by_external_address("a@x.com")


class TestRead:
    def test_get_mutable_attributes(self, directory, connection):
        connection.search.return_value = True
        connection.response = [
            _entry(f"CN=A,{BASE_DN}", title=["CEO"], info="VIP", cn="A")
        ]

        values = directory.get_mutable_attributes(f"CN=A,{BASE_DN}")

        assert values["title"] == "CEO"
        assert values["notes"] == "VIP"
        assert "name" not in values
        kwargs = connection.search.call_args[1]
        assert kwargs["search_base"] == f"CN=A,{BASE_DN}"
        assert kwargs["search_scope"] == BASE
        assert "info" in kwargs["attributes"]

    def test_get_contact_details(self, directory, connection):
        connection.search.return_value = True
        connection.response = [
            _entry(
                f"CN=A,{BASE_DN}",
                targetAddress="SMTP:a@x.com",
                displayName="A",
                mailNickname="a",
            )
        ]

        details = directory.get_contact_details(f"CN=A,{BASE_DN}")

        assert details["external_address"] == "a@x.com"
        assert details["alias"] == "a"

    def test_missing_entry(self, directory, connection):
        connection.search.return_value = False
        connection.result = {"result": 32, "description": "noSuchObject"}
        with pytest.raises(NotFoundError):
            directory.get_mutable_attributes(f"CN=Gone,{BASE_DN}")


class TestCreate:
    def test_adds_contact(self, directory, connection):
        connection.add.return_value = True

        dn = directory.create(
            {"external_address": "a@x.com", "name": "Alice Partner"},
            {"first_name": "Alice"},
        )

        assert dn == f"CN=Alice Partner,{BASE_DN}"
        args = connection.add.call_args[0]
        assert args[0] == dn
        assert args[1] == CONTACT_OBJECT_CLASSES
        attributes = args[2]
        assert attributes["targetAddress"] == "SMTP:a@x.com"
        assert attributes["mail"] == "a@x.com"
        assert attributes["cn"] == "Alice Partner"
        assert attributes["givenName"] == "Alice"

    def test_cn_falls_back_to_address(self, directory, connection):
        connection.add.return_value = True
        dn = directory.create({"external_address": "a@x.com"}, {})
        assert dn == f"CN=a@x.com,{BASE_DN}"

    def test_rdn_escaped(self, directory, connection):
        connection.add.return_value = True
        dn = directory.create(
            {"external_address": "a@x.com", "name": "Partner, Alice"}, {}
        )
        assert dn == f"CN=Partner\\, Alice,{BASE_DN}"

    def test_rejected(self, directory, connection):
        connection.add.return_value = False
        connection.result = {
            "result": 68,
            "description": "entryAlreadyExists",
            "message": "",
        }
        with pytest.raises(DirectoryValidationError, match="entryAlreadyExists"):
            directory.create({"external_address": "a@x.com"}, {})


class TestUpdate:
    def test_replaces_attributes(self, directory, connection):
        connection.modify.return_value = True

        directory.update(f"CN=A,{BASE_DN}", {"title": "CEO", "city": "Oslo"})

        dn, changes = connection.modify.call_args[0]
        assert dn == f"CN=A,{BASE_DN}"
        assert changes == {
            "title": [(MODIFY_REPLACE, ["CEO"])],
            "l": [(MODIFY_REPLACE, ["Oslo"])],
        }

    def test_missing_entry(self, directory, connection):
        connection.modify.return_value = False
        connection.result = {"result": 32, "description": "noSuchObject"}
        with pytest.raises(NotFoundError):
            directory.update(f"CN=Gone,{BASE_DN}", {"title": "CEO"})

    def test_rejected(self, directory, connection):
        connection.modify.return_value = False
        connection.result = {
            "result": 19,
            "description": "constraintViolation",
            "message": "value too long",
        }
        with pytest.raises(
            DirectoryValidationError, match="constraintViolation \\(value too long\\)"
        ):
            directory.update(f"CN=A,{BASE_DN}", {"title": "CEO"})
