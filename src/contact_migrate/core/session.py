"""Directory session lifecycle for export and import runs."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import DirectoryConfig, load_directory_config
from ..config_loader import discover_config_files, load_hierarchical_config
from ..config_schema import UnifiedConfig, build_config, directory_fallbacks
from ..errors import DirectorySessionError
from ..migrate.mapper import RecordMapper
from .ldap_directory import LdapDirectory

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback."""
    print(msg, file=sys.stderr, flush=True)


def load_unified_config() -> UnifiedConfig:
    """Load ``.env`` and the YAML config files into a ``UnifiedConfig``.

    ``.env`` is loaded first so ``${VAR}`` interpolation in YAML can use
    its values.
    """
    load_dotenv()
    config_files = discover_config_files()
    if config_files:
        logger.info("Configuration file: %s", config_files[0])
    return build_config(load_hierarchical_config())


def resolve_directory_config(
    role: str,
    unified: UnifiedConfig,
    overrides: dict[str, Any] | None = None,
) -> DirectoryConfig:
    """Merge CLI overrides, env vars, and the YAML section for *role*.

    Raises:
        DirectorySessionError: If the configuration is missing or invalid.
    """
    overrides = overrides or {}
    try:
        return load_directory_config(
            role,
            url=overrides.get("url"),
            username=overrides.get("username"),
            password=overrides.get("password"),
            base_dn=overrides.get("base_dn"),
            insecure=overrides.get("insecure", False),
            yaml_fallbacks=directory_fallbacks(unified, role),
        )
    except ValueError as e:
        logger.error("Configuration error (%s): %s", role, e)
        raise DirectorySessionError(
            f"Configuration error ({role}): {e}"
        ) from e


@contextmanager
def directory_session(
    config: DirectoryConfig,
    role: str,
    mapper: RecordMapper | None = None,
) -> Iterator[LdapDirectory]:
    """
    Open a bound directory session and always release it.

    On entry:
    - Build the LDAP adapter from *config*
    - Bind, failing fast if the directory is unreachable or rejects
      the credentials

    On exit (normal return, per-record failure, or abort):
    - Unbind

    Args:
        config: Connection settings for the directory.
        role: ``"source"`` or ``"destination"`` (for messages).
        mapper: Optional field <-> attribute mapper.

    Yields:
        The bound ``LdapDirectory``.

    Raises:
        DirectorySessionError: If the bind fails.
    """
    logger.info("Connecting to %s directory %s", role, config.url)
    _stderr_print(f"Connecting to {role} directory {config.url}...")

    directory = LdapDirectory.from_config(config, mapper=mapper)
    try:
        directory.open()
    except DirectorySessionError as e:
        logger.error("Failed to connect to %s directory: %s", role, e)
        _stderr_print(f"ERROR: {role} directory connection failed.")
        _stderr_print(f"  {e}")
        directory.close()
        raise

    logger.info("Bound to %s directory as %s", role, config.username)
    try:
        yield directory
    finally:
        directory.close()
        logger.info("Closed %s directory session", role)
