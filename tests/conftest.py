"""Shared pytest fixtures for contact-migrate tests."""

import pytest

from contact_migrate.config import DirectoryConfig
from contact_migrate.migrate.models import ContactRecord, RecordProvenance


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live directory",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live directory"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep developer shell settings out of config and logging tests."""
    for prefix in ("CONTACT_SOURCE", "CONTACT_DEST"):
        for key in (
            "URL",
            "USERNAME",
            "PASSWORD",
            "BASE_DN",
            "SEARCH_FILTER",
            "INSECURE",
            "PAGE_SIZE",
            "TIMEOUT",
        ):
            monkeypatch.delenv(f"{prefix}_{key}", raising=False)
    monkeypatch.delenv("CONTACT_MIGRATE_CONFIG", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)


@pytest.fixture
def directory_config():
    """A valid destination DirectoryConfig."""
    return DirectoryConfig(
        url="ldaps://dc.example.org",
        username="EXAMPLE\\svc-import",
        password="secret",
        base_dn="OU=Contacts,DC=example,DC=org",
    )


@pytest.fixture
def provenance():
    return RecordProvenance(
        exported_at="2026-01-01T00:00:00+00:00",
        exported_by="EXAMPLE\\svc-export",
        source_system="ldaps://old-dc.example.com",
    )


@pytest.fixture
def alice():
    """A fully identified record with a few attributes."""
    return ContactRecord(
        external_address="alice@partner.com",
        alias="alice.partner",
        display_name="Alice Partner",
        name="Alice Partner",
        first_name="Alice",
        last_name="Partner",
        title="CTO",
        company="Partner Inc",
        phone="+1 555 0100",
    )
