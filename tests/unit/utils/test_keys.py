"""
Unit tests for utils.keys module.

Tests:
- ENV_PRIVATE_KEY constant
- load_keys_from_env() - hex and nsec keys, missing and invalid values
- parse_public_key() - hex and npub normalization
- KeysConfig - Pydantic model that loads keys eagerly
"""

import pytest
from nostr_sdk import Keys
from pydantic import ValidationError

from nwpublisher.utils.keys import (
    ENV_PRIVATE_KEY,
    KeysConfig,
    load_keys_from_env,
    parse_public_key,
)
from tests.conftest import VALID_HEX_KEY


# =============================================================================
# Test Constants
# =============================================================================

VALID_NSEC_KEY = (
    "nsec1vl029mgpspedva04g90vltkh6fvh240zqtv9k0t9af8935ke9laqsnlfe5"  # pragma: allowlist secret
)

INVALID_KEYS = [
    "invalid_key",
    "0" * 32,
    "nsec1invalid",
    "xyz" * 21 + "x",
]


def _expected_pubkey() -> str:
    return Keys.parse(VALID_HEX_KEY).public_key().to_hex()


# =============================================================================
# load_keys_from_env() Tests
# =============================================================================


class TestEnvPrivateKeyConstant:
    """ENV_PRIVATE_KEY constant value."""

    def test_constant_value(self) -> None:
        assert ENV_PRIVATE_KEY == "NOSTR_SK_HEX"  # pragma: allowlist secret


class TestLoadKeysFromEnv:
    """load_keys_from_env() reads hex or nsec keys."""

    def test_missing_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TEST_SK", raising=False)
        with pytest.raises(ValueError, match="TEST_SK environment variable is required"):
            load_keys_from_env("TEST_SK")

    def test_empty_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_SK", "   ")
        with pytest.raises(ValueError, match="is required"):
            load_keys_from_env("TEST_SK")

    def test_hex_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_SK", VALID_HEX_KEY)
        assert load_keys_from_env("TEST_SK").public_key().to_hex() == _expected_pubkey()

    def test_nsec_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_SK", VALID_NSEC_KEY)
        keys = load_keys_from_env("TEST_SK")
        assert keys.secret_key().to_bech32() == VALID_NSEC_KEY

    def test_surrounding_whitespace(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_SK", f"  {VALID_HEX_KEY}\n")
        assert isinstance(load_keys_from_env("TEST_SK"), Keys)

    @pytest.mark.parametrize("value", INVALID_KEYS)
    def test_invalid_key(self, monkeypatch: pytest.MonkeyPatch, value: str) -> None:
        monkeypatch.setenv("TEST_SK", value)
        with pytest.raises(ValueError, match="valid nsec or hex"):
            load_keys_from_env("TEST_SK")


# =============================================================================
# parse_public_key() Tests
# =============================================================================


class TestParsePublicKey:
    """parse_public_key() normalizes to hex."""

    def test_hex(self) -> None:
        pubkey = _expected_pubkey()
        assert parse_public_key(pubkey) == pubkey

    def test_npub(self) -> None:
        public_key = Keys.parse(VALID_HEX_KEY).public_key()
        assert parse_public_key(public_key.to_bech32()) == public_key.to_hex()

    def test_invalid(self) -> None:
        with pytest.raises(ValueError, match="Invalid public key"):
            parse_public_key("npub1nope")


# =============================================================================
# KeysConfig Tests
# =============================================================================


class TestKeysConfig:
    """KeysConfig loads keys at validation time."""

    def test_loads_default_env(self, private_key_env: str) -> None:
        config = KeysConfig.model_validate({})
        assert config.pubkey == _expected_pubkey()

    def test_custom_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OTHER_SK", VALID_NSEC_KEY)
        config = KeysConfig.model_validate({"keys_env": "OTHER_SK"})
        assert config.keys_env == "OTHER_SK"
        assert len(config.pubkey) == 64

    def test_missing_key_fails_validation(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(ENV_PRIVATE_KEY, raising=False)
        with pytest.raises(ValidationError, match="environment variable is required"):
            KeysConfig.model_validate({})

    def test_explicit_keys(self) -> None:
        keys = Keys.parse(VALID_HEX_KEY)
        config = KeysConfig(keys=keys)
        assert config.pubkey == keys.public_key().to_hex()
