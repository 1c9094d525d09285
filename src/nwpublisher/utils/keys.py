"""Nostr key management utilities for nwpublisher.

Provides functions and Pydantic models for loading the operator's signing
key from an environment variable. Supports both nsec1 (bech32) and
hex-encoded private key formats.

Warning:
    Private keys must **never** be stored in configuration files, source
    code, or logged to any output. The key is read once at process start,
    held in memory, and only used locally to sign tombstones.

Note:
    Key loading happens eagerly at config validation time via
    [KeysConfig][nwpublisher.utils.keys.KeysConfig]'s model validator, so a
    missing or invalid key is reported before any relay is contacted.

Examples:
    ```python
    import os

    os.environ["NOSTR_SK_HEX"] = "nsec1..."  # pragma: allowlist secret
    keys = load_keys_from_env("NOSTR_SK_HEX")
    print(keys.public_key().to_hex())
    ```
"""

from __future__ import annotations

import os
from typing import Any

from nostr_sdk import Keys, NostrSdkError, PublicKey
from pydantic import BaseModel, Field, model_validator


ENV_PRIVATE_KEY = "NOSTR_SK_HEX"  # pragma: allowlist secret  # Default env var name


def load_keys_from_env(env_var: str) -> Keys:
    """Load Nostr keys from an environment variable.

    Args:
        env_var: Name of the environment variable containing the private key.

    Returns:
        A ``nostr_sdk.Keys`` instance ready for signing operations.

    Raises:
        ValueError: If the variable is unset, empty, or not a valid key.
    """
    value = os.getenv(env_var, "").strip()

    if not value:
        raise ValueError(
            f"{env_var} environment variable is required. Generate one with: openssl rand -hex 32"
        )

    try:
        return Keys.parse(value)
    except NostrSdkError as e:
        raise ValueError(f"{env_var} does not hold a valid nsec or hex private key") from e


def parse_public_key(value: str) -> str:
    """Normalize an npub1 or hex public key to 64-char lowercase hex.

    Raises:
        ValueError: If *value* is not a valid public key.
    """
    try:
        return PublicKey.parse(value.strip()).to_hex()
    except NostrSdkError as e:
        raise ValueError(f"Invalid public key: {value!r}") from e


class KeysConfig(BaseModel):
    """Pydantic model that auto-loads Nostr keys from an environment variable.

    The ``keys`` field is populated during validation from the environment
    variable named by ``keys_env``.

    Attributes:
        keys_env: Environment variable name for the private key.
        keys: Loaded ``nostr_sdk.Keys`` instance (private + derived public key).

    Warning:
        The ``keys`` field contains a live private key. Do not serialize
        this model to logs, JSON, or any persistent storage.
    """

    model_config = {"arbitrary_types_allowed": True}

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for private key",
    )
    keys: Keys = Field(description="Keys loaded from keys_env (required)")

    @model_validator(mode="before")
    @classmethod
    def _load_keys_from_env(cls, data: Any) -> Any:
        """Auto-populate the ``keys`` field from the environment variable."""
        if isinstance(data, dict) and "keys" not in data:
            env_var = data.get("keys_env", ENV_PRIVATE_KEY)
            data = {**data, "keys": load_keys_from_env(env_var)}
        return data

    @property
    def pubkey(self) -> str:
        """Hex public key derived from the loaded private key."""
        return self.keys.public_key().to_hex()
