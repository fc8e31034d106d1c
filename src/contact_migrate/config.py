"""Directory connection configuration.

Reads LDAP connection settings for the source and destination directories
from CLI args, environment variables, .env files, and YAML config file
fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables (``<P>`` is ``CONTACT_SOURCE`` or ``CONTACT_DEST``):
    <P>_URL: Directory URL, ldap:// or ldaps:// (required)
    <P>_USERNAME: Bind DN or user principal (required)
    <P>_PASSWORD: Bind password (required)
    <P>_BASE_DN: Container holding the contacts (required)
    <P>_SEARCH_FILTER: Extra LDAP filter for contact searches (optional)
    <P>_INSECURE: Skip TLS certificate verification (optional, default: false)
    <P>_PAGE_SIZE: Search page size (optional, default: 500)
    <P>_TIMEOUT: Connect/receive timeout in seconds (optional, default: 30)

The per-field LDAP attribute overrides (``attribute_map``) are read from
the YAML section only.
"""

import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

from .migrate.mapper import DEFAULT_ATTRIBUTE_MAP

logger = logging.getLogger(__name__)

ENV_PREFIXES = {
    "source": "CONTACT_SOURCE",
    "destination": "CONTACT_DEST",
}

CLI_FLAG_PREFIXES = {
    "source": "--source",
    "destination": "--dest",
}


@dataclass
class DirectoryConfig:
    url: str
    username: str
    password: str
    base_dn: str
    search_filter: str | None = None
    insecure: bool = False
    page_size: int = 500
    timeout: int = 30
    attribute_map: dict[str, str] = field(default_factory=dict)


def validate_directory_config(config: DirectoryConfig) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: DirectoryConfig instance to validate.

    Raises:
        ValueError: If URL format is invalid or required values are empty.
    """
    config.url = config.url.strip()

    if not config.url.startswith(("ldap://", "ldaps://")):
        raise ValueError(
            f"Invalid directory URL '{config.url}': must start with ldap:// or ldaps://"
        )

    parsed = urlparse(config.url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid directory URL '{config.url}': URL must include a hostname"
        )

    config.url = config.url.removesuffix("/")

    if not config.username.strip():
        raise ValueError("Directory username cannot be empty.")

    if not config.password.strip():
        raise ValueError("Directory password cannot be empty.")

    if not config.base_dn.strip():
        raise ValueError("Directory base DN cannot be empty.")

    if config.search_filter:
        config.search_filter = config.search_filter.strip()
        if not (
            config.search_filter.startswith("(")
            and config.search_filter.endswith(")")
        ):
            raise ValueError(
                f"Invalid search filter '{config.search_filter}': "
                "must be enclosed in parentheses"
            )

    unknown = set(config.attribute_map) - set(DEFAULT_ATTRIBUTE_MAP)
    if unknown:
        raise ValueError(
            f"Unknown contact fields in attribute_map: {sorted(unknown)}"
        )

    if config.insecure:
        logger.warning(
            "WARNING: TLS verification disabled for %s. Use only for testing.",
            config.url,
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_int(
    env_key: str,
    fallbacks: dict,
    fb_key: str,
    default: int,
    low: int,
    high: int,
) -> int:
    """Resolve a bounded integer from env var > YAML > default."""
    raw = os.getenv(env_key)
    if raw is None:
        return int(fallbacks.get(fb_key, default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {env_key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {env_key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def load_directory_config(
    role: str,
    url: str | None = None,
    username: str | None = None,
    password: str | None = None,
    base_dn: str | None = None,
    insecure: bool = False,
    yaml_fallbacks: dict | None = None,
) -> DirectoryConfig:
    """Load configuration for one directory with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        role: ``"source"`` or ``"destination"``; selects the env prefix.
        url: Override directory URL.
        username: Override bind user.
        password: Override bind password.
        base_dn: Override contact container DN.
        insecure: Skip TLS verification (CLI flag).
        yaml_fallbacks: Dict of values from the YAML config section for
            *role*.  Used when CLI arg and env var are both unset.

    Returns:
        Validated DirectoryConfig instance.

    Raises:
        ValueError: If required config is missing after checking all
            sources, or a value is invalid.
    """
    if role not in ENV_PREFIXES:
        raise ValueError(f"Unknown directory role '{role}'")
    prefix = ENV_PREFIXES[role]
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > error ---

    def required(value: str | None, key: str, flag: str) -> str:
        resolved = value or os.getenv(f"{prefix}_{key.upper()}") or fb.get(key)
        if not resolved:
            raise ValueError(
                f"{role.capitalize()} directory {key} not found. "
                f"Set {prefix}_{key.upper()} environment variable, "
                f"pass {flag}, or add '{key}' to the '{role}' section "
                "of config.yml."
            )
        return resolved.strip()

    flag = CLI_FLAG_PREFIXES[role]
    final_url = required(url, "url", f"{flag}-url")
    final_username = required(username, "username", f"{flag}-username")
    final_password = required(password, "password", f"{flag}-password")
    final_base_dn = required(base_dn, "base_dn", f"{flag}-base-dn")

    final_filter = os.getenv(f"{prefix}_SEARCH_FILTER") or fb.get(
        "search_filter"
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    if insecure:
        final_insecure = True
    else:
        env_insecure = _get_bool_env(f"{prefix}_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    # --- Numeric fields: env > YAML > default ---

    final_page_size = _get_int(
        f"{prefix}_PAGE_SIZE", fb, "page_size", 500, 1, 10000
    )
    final_timeout = _get_int(f"{prefix}_TIMEOUT", fb, "timeout", 30, 1, 600)

    config = DirectoryConfig(
        url=final_url,
        username=final_username,
        password=final_password,
        base_dn=final_base_dn,
        search_filter=final_filter,
        insecure=final_insecure,
        page_size=final_page_size,
        timeout=final_timeout,
        attribute_map=dict(fb.get("attribute_map") or {}),
    )

    validate_directory_config(config)

    return config
