"""
Abstract base class for nwpublisher commands.

``BaseCommand[ConfigT]`` provides the lifecycle shared by every operator
command (``sync``, ``cleanup``, ``status``, ``versions``): structured
logging via [Logger][nwpublisher.core.logger.Logger], typed configuration
with YAML/dict factories, and a shutdown flag that long operations check
between relays.

Configuration is explicit: the relay list, timeouts, retry policy and,
for signing commands, the keys are validated once into a config object and
passed in. Nothing below the CLI reads process environment at call time.

See Also:
    [RelayEventStore][nwpublisher.core.store.RelayEventStore]: Relay access
        injected into every command.
    [BaseCommandConfig][nwpublisher.core.base_command.BaseCommandConfig]:
        Base configuration model for all commands.
"""

from __future__ import annotations

import asyncio
import os
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Any, ClassVar, Generic, Self, TypeVar, cast

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from nwpublisher.models.constants import (
    MAX_RELAY_COUNT,
    MIN_RELAY_COUNT,
    CommandName,
)
from nwpublisher.models.relay import Relay

from .exceptions import ConfigurationError
from .logger import Logger
from .retry import RetryConfig
from .store import RelayEventStore  # noqa: TC001
from .yaml import load_yaml


ENV_RELAYS = "RELAYS"


# ---------------------------------------------------------------------------
# Shared Configuration
# ---------------------------------------------------------------------------


def parse_relay_list(value: str) -> list[str]:
    """Split a comma-separated relay list, keeping only ws:// and wss:// URLs."""
    urls = (part.strip() for part in value.split(","))
    return [url for url in urls if url.startswith(("wss://", "ws://"))]


class RelaysConfig(BaseModel):
    """Relays the site is reconciled across.

    When ``urls`` is not given, the comma-separated environment variable
    named by ``env_var`` is read instead. No usable URL from either source
    is a configuration error; there is no built-in relay list.

    Attributes:
        urls: Normalized relay URLs, deduplicated, in configured order.
        env_var: Environment variable consulted when ``urls`` is absent.
        allow_insecure: Retry relays whose TLS certificate is rejected
            without certificate verification.
    """

    urls: list[str]
    env_var: str = Field(default=ENV_RELAYS, min_length=1)
    allow_insecure: bool = False

    @model_validator(mode="before")
    @classmethod
    def _resolve_urls(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("urls") is None:
            env_var = data.get("env_var", ENV_RELAYS)
            urls = parse_relay_list(os.getenv(env_var, ""))
            if not urls:
                raise ValueError(f"No relays configured: set relays.urls or {env_var}")
            data = {**data, "urls": urls}
        return data

    @field_validator("urls")
    @classmethod
    def _validate_urls(cls, v: list[str]) -> list[str]:
        normalized = list(dict.fromkeys(Relay(url).url for url in v))
        if len(normalized) < MIN_RELAY_COUNT:
            raise ValueError("at least one relay is required")
        if len(normalized) > MAX_RELAY_COUNT:
            raise ValueError(f"at most {MAX_RELAY_COUNT} relays are supported, got {len(normalized)}")
        return normalized

    @property
    def relays(self) -> list[Relay]:
        return [Relay(url) for url in self.urls]


class TimeoutsConfig(BaseModel):
    """Bounded waits for every relay round-trip, in seconds."""

    connect: float = Field(default=10.0, gt=0.0, le=120.0, description="Relay connection")
    query: float = Field(default=30.0, gt=0.0, le=300.0, description="Snapshot query per relay")
    publish: float = Field(default=10.0, gt=0.0, le=120.0, description="Single publish")


class BaseCommandConfig(BaseModel):
    """Base configuration shared by all commands.

    See Also:
        [BaseCommand][nwpublisher.core.base_command.BaseCommand]: The
            abstract command class that consumes this configuration.
    """

    relays: RelaysConfig = Field(default_factory=dict, validate_default=True)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)


ConfigT = TypeVar("ConfigT", bound=BaseCommandConfig)
ResultT = TypeVar("ResultT")


# ---------------------------------------------------------------------------
# Base Command
# ---------------------------------------------------------------------------


class BaseCommand(ABC, Generic[ConfigT, ResultT]):
    """Abstract base class for all nwpublisher commands.

    Subclasses set ``COMMAND_NAME`` and ``CONFIG_CLASS`` and implement
    [run()][nwpublisher.core.base_command.BaseCommand.run], which returns a
    structured result for the presentation layer to render.

    Attributes:
        COMMAND_NAME: Command identifier used in logging.
        CONFIG_CLASS: Pydantic model used by the factory methods.
        _store: [RelayEventStore][nwpublisher.core.store.RelayEventStore].
        _config: Typed command configuration.
        _logger: [Logger][nwpublisher.core.logger.Logger] named after the command.
        _shutdown_event: Set once shutdown is requested.
    """

    COMMAND_NAME: ClassVar[CommandName]
    CONFIG_CLASS: ClassVar[type[BaseCommandConfig]]

    def __init__(self, config: ConfigT, store: RelayEventStore) -> None:
        self._config = config
        self._store = store
        self._logger = Logger(self.COMMAND_NAME)
        self._shutdown_event = asyncio.Event()

    @property
    def config(self) -> ConfigT:
        """The typed command configuration (read-only)."""
        return self._config

    @property
    def relays(self) -> list[Relay]:
        return self._config.relays.relays

    @abstractmethod
    async def run(self) -> ResultT:
        """Execute the command and return its structured result."""
        ...

    def request_shutdown(self) -> None:
        """Request a graceful stop; work in progress on one relay finishes first.

        Safe to call from signal handlers because setting an
        ``asyncio.Event`` is atomic.
        """
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        """Whether shutdown has not been requested."""
        return not self._shutdown_event.is_set()

    # -------------------------------------------------------------------------
    # Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def parse_config(cls, data: dict[str, Any]) -> ConfigT:
        """Validate *data* into ``CONFIG_CLASS``.

        Raises:
            ConfigurationError: If validation fails (including a missing key
                or an empty relay list).
        """
        try:
            return cast("ConfigT", cls.CONFIG_CLASS.model_validate(data))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid {cls.COMMAND_NAME} configuration: {e}") from e

    @classmethod
    def from_yaml(cls, config_path: str, store: RelayEventStore, **kwargs: Any) -> Self:
        """Create a command from a YAML configuration file."""
        return cls.from_dict(load_yaml(config_path), store=store, **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any], store: RelayEventStore, **kwargs: Any) -> Self:
        """Create a command from a configuration dictionary."""
        return cls(config=cls.parse_config(data), store=store, **kwargs)

    # -------------------------------------------------------------------------
    # Context Manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> Self:
        self._shutdown_event.clear()
        self._logger.info("command_started", relays=len(self._config.relays.urls))
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        self._shutdown_event.set()
        self._logger.info("command_stopped")
