"""Unit tests for API key validation."""

import pytest

from restaurant_pos_service.auth.api_key_validator import (
    DEVELOPMENT_API_KEYS,
    APIKeyValidator,
    configured_api_keys,
    parse_api_keys,
)


@pytest.mark.unit
class TestAPIKeyValidator:
    """Test suite for APIKeyValidator."""

    def test_validator_initialization_with_empty_mapping_raises_error(self) -> None:
        """Test that initializing with no keys raises ValueError."""
        with pytest.raises(ValueError, match="At least one API key must be provided"):
            APIKeyValidator(api_keys={})

    def test_validate_returns_true_for_valid_key(self) -> None:
        validator = APIKeyValidator(api_keys={"valid-key": "org_1"})
        assert validator.validate("valid-key") is True

    def test_validate_returns_false_for_invalid_key(self) -> None:
        validator = APIKeyValidator(api_keys={"valid-key": "org_1"})
        assert validator.validate("invalid-key") is False
        assert validator.validate("") is False

    def test_validate_is_case_sensitive(self) -> None:
        """Test that API key validation is case-sensitive."""
        validator = APIKeyValidator(api_keys={"TestKey123": "org_1"})
        assert validator.validate("TestKey123") is True
        assert validator.validate("testkey123") is False

    def test_key_authorizes_only_its_organization(self) -> None:
        """A key issued for one tenant cannot reach another."""
        validator = APIKeyValidator(api_keys={"key-a": "org_a", "key-b": "org_b"})

        assert validator.authorizes("key-a", "org_a") is True
        assert validator.authorizes("key-a", "org_b") is False
        assert validator.authorizes("unknown", "org_a") is False

    def test_organization_for(self) -> None:
        validator = APIKeyValidator(api_keys={"key-a": "org_a"})

        assert validator.organization_for("key-a") == "org_a"
        assert validator.organization_for("key-z") is None


@pytest.mark.unit
class TestParseAPIKeys:
    """Test suite for POS_API_KEYS parsing."""

    def test_parses_pairs_and_strips_whitespace(self) -> None:
        assert parse_api_keys(" key-a:org_a , key-b:org_b,") == {
            "key-a": "org_a",
            "key-b": "org_b",
        }

    @pytest.mark.parametrize("raw", ["key-a", "key-a:", ":org_a"])
    def test_malformed_entry_raises(self, raw: str) -> None:
        with pytest.raises(ValueError, match="expected key:organization_id"):
            parse_api_keys(raw)

    def test_empty_configuration_falls_back_to_development_key(self) -> None:
        assert configured_api_keys("") == DEVELOPMENT_API_KEYS

    def test_configured_keys_are_used(self) -> None:
        assert configured_api_keys("prod-key:org_1") == {"prod-key": "org_1"}
