"""Core layer providing the foundation for all nwpublisher commands.

Sits in the middle of the diamond DAG. It depends only on
``nwpublisher.models`` and is depended upon by ``nwpublisher.services``.

Attributes:
    BaseCommand: Abstract generic base class with typed configuration,
        factory methods
        ([from_yaml()][nwpublisher.core.base_command.BaseCommand.from_yaml],
        [from_dict()][nwpublisher.core.base_command.BaseCommand.from_dict])
        and a shutdown flag.
    RelayEventStore: The interface every command uses to reach relays.
        See [RelayEventStore][nwpublisher.core.store.RelayEventStore].
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][nwpublisher.core.logger.Logger].
    retry_with_backoff: Exponential backoff for relay round-trips.
        See [retry_with_backoff()][nwpublisher.core.retry.retry_with_backoff].
    YAML: Safe YAML loading with ``yaml.safe_load()`` to prevent code execution.
        See [load_yaml()][nwpublisher.core.yaml.load_yaml].

See Also:
    [nwpublisher.models][nwpublisher.models]: Pure dataclass models consumed
        by this layer.
    [nwpublisher.services][nwpublisher.services]: Commands that depend on
        this layer.
"""

from .base_command import (
    BaseCommand,
    BaseCommandConfig,
    ConfigT,
    RelaysConfig,
    TimeoutsConfig,
)
from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    NwPublisherError,
    ProtocolError,
    PublishingError,
    RelaySSLError,
    RelayTimeoutError,
    VersionNotFoundError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .retry import RETRYABLE_ERRORS, RetryConfig, retry_with_backoff
from .store import (
    DeletionRequest,
    PublishResult,
    RelayConnection,
    RelayEventStore,
    deletion_batches,
)
from .yaml import load_yaml


__all__ = [
    "RETRYABLE_ERRORS",
    "BaseCommand",
    "BaseCommandConfig",
    "ConfigT",
    "ConfigurationError",
    "ConnectivityError",
    "DeletionRequest",
    "Logger",
    "NwPublisherError",
    "ProtocolError",
    "PublishResult",
    "PublishingError",
    "RelayConnection",
    "RelayEventStore",
    "RelaySSLError",
    "RelayTimeoutError",
    "RelaysConfig",
    "RetryConfig",
    "StructuredFormatter",
    "TimeoutsConfig",
    "VersionNotFoundError",
    "deletion_batches",
    "format_kv_pairs",
    "load_yaml",
    "retry_with_backoff",
]
