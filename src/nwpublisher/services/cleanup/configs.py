"""Cleanup command configuration models.

See Also:
    [CleanupCommand][nwpublisher.services.cleanup.CleanupCommand]: The
        command class that consumes this configuration.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field, field_validator, model_validator

from nwpublisher.core.base_command import BaseCommandConfig
from nwpublisher.models.relay import Relay
from nwpublisher.services.common.configs import ExecutionConfig
from nwpublisher.utils.keys import KeysConfig


class CleanupMode(StrEnum):
    """What a cleanup run deletes.

    Attributes:
        ORPHANS: Events no entrypoint-to-asset chain reaches, per relay.
        VERSION: One version's site-index, entrypoint, manifests and assets.
        ALL: Every site event of the identity.
    """

    ORPHANS = "orphans"
    VERSION = "version"
    ALL = "all"


class CleanupConfig(BaseCommandConfig):
    """Cleanup command configuration.

    Attributes:
        mode: What to delete.
        version: Version label or key, required for ``mode=version``.
        relay: Restrict the run to this single relay URL.
    """

    keys: KeysConfig = Field(default_factory=lambda: KeysConfig.model_validate({}))
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    mode: CleanupMode = CleanupMode.ORPHANS
    version: str | None = Field(default=None, min_length=1)
    relay: str | None = None

    @field_validator("relay")
    @classmethod
    def _normalize_relay(cls, v: str | None) -> str | None:
        return Relay(v).url if v is not None else None

    @model_validator(mode="after")
    def _validate_mode(self) -> CleanupConfig:
        if self.mode == CleanupMode.VERSION and self.version is None:
            raise ValueError("mode 'version' requires a version")
        return self

    @property
    def targets(self) -> list[Relay]:
        """Relays this run touches."""
        if self.relay is not None:
            return [Relay(self.relay)]
        return self.relays.relays
