"""Unified configuration schema for contact_migrate.

Defines Pydantic models for the unified config structure with dedicated
sections for the source directory, the destination directory, migration
options, and logging.  Includes helpers that turn a directory section into
fallback values for ``load_directory_config()``.

Usage:
    from contact_migrate.config_schema import build_config, directory_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    fallbacks = directory_fallbacks(unified, "destination")
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class DirectorySection(BaseModel):
    """LDAP connection settings for one directory.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    url: str | None = Field(
        default=None, description="Directory URL (ldap:// or ldaps://)"
    )
    username: str | None = Field(default=None, description="Bind user")
    password: str | None = Field(default=None, description="Bind password")
    base_dn: str | None = Field(
        default=None, description="Container holding the contacts"
    )
    search_filter: str | None = Field(
        default=None, description="Extra LDAP filter for contact searches"
    )
    insecure: bool = Field(
        default=False,
        description="Disable TLS certificate verification (testing only)",
    )
    page_size: int = Field(
        default=500,
        ge=1,
        le=10000,
        description="Search page size (1-10000)",
    )
    timeout: int = Field(
        default=30,
        ge=1,
        le=600,
        description="Connect/receive timeout in seconds (1-600)",
    )
    attribute_map: dict[str, str] = Field(
        default_factory=dict,
        description="Contact field -> LDAP attribute overrides",
    )

    model_config = {"frozen": True}


class MigrationSection(BaseModel):
    """Migration run options.

    Attributes:
        record_file: Default intermediate file path.
        dry_run: Default for the import ``--dry-run`` flag.
        source_system: Label stored as record provenance on export.
    """

    record_file: str = Field(
        default="contacts.json", description="Intermediate record file"
    )
    dry_run: bool = Field(
        default=False, description="Import without writing changes"
    )
    source_system: str | None = Field(
        default=None,
        description="Source system label (defaults to the source URL)",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``text`` or ``json``.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: str = Field(
        default="text",
        pattern="^(text|json)$",
        description="Log line format",
    )

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    source: DirectorySection = Field(default_factory=DirectorySection)
    destination: DirectorySection = Field(default_factory=DirectorySection)
    migration: MigrationSection = Field(default_factory=MigrationSection)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> load_directory_config() fallbacks
# ---------------------------------------------------------------------------


def directory_fallbacks(
    unified: UnifiedConfig, role: str
) -> dict[str, Any]:
    """Return the non-None values of one directory section.

    The result is passed as ``yaml_fallbacks`` to
    ``load_directory_config()`` so that CLI args and env vars still win.

    Args:
        unified: The unified config produced by ``build_config()``.
        role: ``"source"`` or ``"destination"``.

    Returns:
        Dict of configured values for the section.
    """
    section: DirectorySection = getattr(unified, role)
    return {k: v for k, v in section.model_dump().items() if v is not None}
