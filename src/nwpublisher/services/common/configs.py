"""Shared configuration models for plan execution.

See Also:
    [PlanExecutor][nwpublisher.services.common.executor.PlanExecutor]:
        Consumes [ExecutionConfig][nwpublisher.services.common.configs.ExecutionConfig].
    [SyncConfig][nwpublisher.services.sync.SyncConfig],
    [CleanupConfig][nwpublisher.services.cleanup.CleanupConfig]:
        Command configs that embed ``ExecutionConfig``.

Examples:
    ```yaml
    execution:
      max_concurrency: 3
      deletion_batch_size: 10
    ```
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from nwpublisher.models.constants import DELETION_BATCH_SIZE, MAX_RELAY_COUNT
from nwpublisher.utils.keys import ENV_PRIVATE_KEY, load_keys_from_env, parse_public_key


class ExecutionConfig(BaseModel):
    """How a confirmed plan is applied to the relays.

    Attributes:
        max_concurrency: Relays processed at the same time (1 = sequential).
        deletion_batch_size: Target ids per tombstone.
    """

    max_concurrency: int = Field(default=1, ge=1, le=MAX_RELAY_COUNT)
    deletion_batch_size: int = Field(default=DELETION_BATCH_SIZE, ge=1, le=500)


class AuthorConfig(BaseModel):
    """Identity whose site is inspected by the read-only commands.

    ``pubkey`` accepts hex or npub. When omitted, the public key is derived
    from the private key in the environment variable named by ``keys_env``.

    Attributes:
        pubkey: Normalized 64-char hex public key.
        keys_env: Environment variable consulted when ``pubkey`` is absent.
    """

    pubkey: str = Field(default="", description="Hex or npub public key")
    keys_env: str = Field(default=ENV_PRIVATE_KEY, min_length=1)

    @model_validator(mode="after")
    def _resolve_pubkey(self) -> AuthorConfig:
        if self.pubkey:
            self.pubkey = parse_public_key(self.pubkey)
        else:
            self.pubkey = load_keys_from_env(self.keys_env).public_key().to_hex()
        return self
