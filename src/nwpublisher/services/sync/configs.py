"""Sync command configuration models.

See Also:
    [SyncCommand][nwpublisher.services.sync.SyncCommand]: The command class
        that consumes this configuration.
    [BaseCommandConfig][nwpublisher.core.base_command.BaseCommandConfig]:
        Base class providing ``relays``, ``timeouts`` and ``retry``.
"""

from __future__ import annotations

from pydantic import Field

from nwpublisher.core.base_command import BaseCommandConfig
from nwpublisher.services.common.configs import ExecutionConfig
from nwpublisher.utils.keys import KeysConfig

from .selector import SourcePolicy


class SyncConfig(BaseCommandConfig):
    """Sync command configuration.

    See Also:
        [KeysConfig][nwpublisher.utils.keys.KeysConfig]: Identity whose site
            is reconciled; also signs tombstones.
        [ExecutionConfig][nwpublisher.services.common.configs.ExecutionConfig]:
            Concurrency and tombstone batching.
    """

    keys: KeysConfig = Field(default_factory=lambda: KeysConfig.model_validate({}))
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    source_policy: SourcePolicy = Field(
        default=SourcePolicy.SMALLEST_URL,
        description="How the source relay of each version is chosen",
    )
