"""API key validation bound to tenants.

Each API key belongs to exactly one organization; a request may only touch
the organization its key was issued for.
"""

import logging

logger = logging.getLogger(__name__)


def parse_api_keys(raw: str) -> dict[str, str]:
    """Parse ``key:organization_id`` pairs separated by commas.

    Args:
        raw: Value of the ``POS_API_KEYS`` environment variable

    Returns:
        Mapping of API key to organization id

    Raises:
        ValueError: If an entry is not of the form ``key:organization_id``
    """
    keys: dict[str, str] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        key, sep, organization_id = entry.partition(":")
        if not sep or not key.strip() or not organization_id.strip():
            raise ValueError(f"Invalid API key entry: {entry!r}, expected key:organization_id")
        keys[key.strip()] = organization_id.strip()
    return keys


class APIKeyValidator:
    """Validates API keys and resolves the organization they are bound to."""

    def __init__(self, api_keys: dict[str, str]) -> None:
        """Initialize validator.

        Args:
            api_keys: Mapping of API key to organization id

        Raises:
            ValueError: If no API keys are configured
        """
        if not api_keys:
            raise ValueError("At least one API key must be provided")

        self.api_keys = dict(api_keys)

    def validate(self, api_key: str) -> bool:
        return api_key in self.api_keys

    def organization_for(self, api_key: str) -> str | None:
        """Organization the key was issued for, None for an unknown key."""
        return self.api_keys.get(api_key)

    def authorizes(self, api_key: str, organization_id: str) -> bool:
        """Whether ``api_key`` may access ``organization_id``."""
        return self.api_keys.get(api_key) == organization_id


DEVELOPMENT_API_KEYS = {"dev-key": "dev-org"}


def configured_api_keys(raw: str) -> dict[str, str]:
    """API keys from configuration, falling back to a development key.

    Args:
        raw: Value of the ``POS_API_KEYS`` environment variable, may be empty
    """
    api_keys = parse_api_keys(raw)
    if not api_keys:
        logger.warning("No POS_API_KEYS configured - using development key for dev-org")
        api_keys = dict(DEVELOPMENT_API_KEYS)
    return api_keys
