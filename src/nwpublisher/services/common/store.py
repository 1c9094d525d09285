"""Relay event store backed by ``nostr_sdk.Client``.

[NostrRelayStore][nwpublisher.services.common.store.NostrRelayStore]
implements [RelayEventStore][nwpublisher.core.store.RelayEventStore] on top
of the protocol helpers in [nwpublisher.utils.protocol][]. Every round-trip
is bounded by a timeout from
[TimeoutsConfig][nwpublisher.core.base_command.TimeoutsConfig]; connects,
publishes and deletions go through
[retry_with_backoff()][nwpublisher.core.retry.retry_with_backoff].

Relay data is untrusted: events are converted into typed
[GraphEvent][nwpublisher.models.graph.GraphEvent] variants once, on entry,
and anything that fails envelope validation is logged and dropped.

See Also:
    [collect_snapshot()][nwpublisher.services.common.snapshot.collect_snapshot]:
        Concurrent fan-out of ``query`` over all configured relays.
"""

from __future__ import annotations

import asyncio
import json
import ssl
from typing import TYPE_CHECKING

from nostr_sdk import Event as NostrEvent
from nostr_sdk import NostrSdkError

from nwpublisher.core.base_command import TimeoutsConfig
from nwpublisher.core.exceptions import (
    ConnectivityError,
    PublishingError,
    RelaySSLError,
    RelayTimeoutError,
)
from nwpublisher.core.logger import Logger
from nwpublisher.core.retry import RETRYABLE_ERRORS, RetryConfig, retry_with_backoff
from nwpublisher.core.store import DeletionRequest, PublishResult
from nwpublisher.models.graph import GraphEvent, parse_event
from nwpublisher.utils.protocol import (
    build_deletion,
    connect_relay,
    fetch_events,
    send_event,
    shutdown_client,
    site_filter,
)


if TYPE_CHECKING:
    from collections.abc import Iterable

    from nostr_sdk import Client, Keys

    from nwpublisher.models.relay import Relay


_SEND_RETRY_ON: tuple[type[BaseException], ...] = (*RETRYABLE_ERRORS, NostrSdkError)


def to_graph_events(raw_events: Iterable[NostrEvent], logger: Logger) -> list[GraphEvent]:
    """Convert verified ``nostr_sdk`` events into typed graph events.

    Events rejected by envelope validation are logged at debug level and
    skipped. Duplicate ids keep their first occurrence.
    """
    events: list[GraphEvent] = []
    seen: set[str] = set()
    for raw in raw_events:
        try:
            event = parse_event(json.loads(raw.as_json()))
        except (ValueError, TypeError) as e:
            logger.debug("invalid_event_skipped", error=str(e))
            continue
        if event.id in seen:
            continue
        seen.add(event.id)
        events.append(event)
    return events


class NostrRelayConnection:
    """Open session with one relay for publishing and deleting.

    Relay rejections are returned as a not-accepted
    [PublishResult][nwpublisher.core.store.PublishResult]; transient
    failures are retried and then reported the same way, so a single bad
    event never aborts the rest of the relay's delta.
    """

    def __init__(
        self,
        relay: Relay,
        client: Client,
        *,
        keys: Keys | None,
        timeouts: TimeoutsConfig,
        retry: RetryConfig,
        logger: Logger,
    ) -> None:
        self._relay = relay
        self._client = client
        self._keys = keys
        self._timeouts = timeouts
        self._retry = retry
        self._logger = logger.bind(relay=relay.url)

    @property
    def relay(self) -> Relay:
        return self._relay

    async def publish(self, event: GraphEvent) -> PublishResult:
        """Send *event* unchanged; the relay sees the original id and signature."""
        try:
            nostr_event = NostrEvent.from_json(event.to_json())
        except NostrSdkError as e:
            return self._failed(event.id, "publish", e)
        return await self._send(nostr_event, event.id, "publish")

    async def delete(self, request: DeletionRequest) -> PublishResult:
        """Sign a tombstone for ``request.target_ids`` and send it.

        Raises:
            PublishingError: If the store was built without signing keys.
        """
        if self._keys is None:
            raise PublishingError("deletion requires signing keys", relay_url=self._relay.url)
        try:
            tombstone = build_deletion(
                request.target_ids, request.reason, self._keys, request.kinds
            )
        except NostrSdkError as e:
            return self._failed(",".join(request.target_ids), "delete", e)
        return await self._send(tombstone, tombstone.id().to_hex(), "delete")

    async def close(self) -> None:
        await shutdown_client(self._client)

    def _failed(self, event_id: str, operation: str, error: BaseException) -> PublishResult:
        self._logger.warning(
            f"relay_{operation}_failed",
            event_id=event_id,
            error=str(error),
            error_type=type(error).__name__,
        )
        return PublishResult(
            event_id=event_id, accepted=False, message=str(error) or type(error).__name__
        )

    async def _send(self, nostr_event: NostrEvent, event_id: str, operation: str) -> PublishResult:
        async def _attempt() -> str | None:
            return await asyncio.wait_for(
                send_event(self._client, nostr_event), timeout=self._timeouts.publish
            )

        try:
            rejection = await retry_with_backoff(
                _attempt,
                self._retry,
                operation,
                relay_url=self._relay.url,
                retry_on=_SEND_RETRY_ON,
            )
        except _SEND_RETRY_ON as e:
            return self._failed(event_id, operation, e)

        if rejection is not None:
            self._logger.warning(f"relay_{operation}_rejected", event_id=event_id, reason=rejection)
            return PublishResult(event_id=event_id, accepted=False, message=rejection)

        self._logger.debug(f"relay_{operation}_accepted", event_id=event_id)
        return PublishResult(event_id=event_id, accepted=True)


class NostrRelayStore:
    """[RelayEventStore][nwpublisher.core.store.RelayEventStore] over nostr-sdk.

    Attributes:
        _keys: Signing keys for tombstones (``None`` for read-only commands).
        _timeouts: Connect, query and publish timeouts.
        _retry: Backoff policy for connects, publishes and deletions.
        _allow_insecure: Fall back to an unverified TLS transport on
            certificate errors.

    Examples:
        ```python
        store = NostrRelayStore(keys=config.keys.keys, timeouts=config.timeouts)
        events = await store.query(relay, SITE_KINDS, pubkey)
        connection = await store.connect(relay)
        try:
            await connection.publish(events[0])
        finally:
            await connection.close()
        ```
    """

    def __init__(
        self,
        *,
        keys: Keys | None = None,
        timeouts: TimeoutsConfig | None = None,
        retry: RetryConfig | None = None,
        allow_insecure: bool = False,
    ) -> None:
        self._keys = keys
        self._timeouts = timeouts or TimeoutsConfig()
        self._retry = retry or RetryConfig()
        self._allow_insecure = allow_insecure
        self._logger = Logger("store")

    async def query(self, relay: Relay, kinds: Iterable[int], author: str) -> list[GraphEvent]:
        """Fetch every event of *kinds* by *author* from *relay*.

        Returns an empty list when the relay cannot be reached or the query
        fails. Connecting is not retried here: an unreachable relay simply
        contributes nothing to the snapshot.
        """
        kinds = list(kinds)
        try:
            client = await self._open(relay)
        except ConnectivityError as e:
            self._logger.warning("query_connect_failed", relay=relay.url, error=str(e))
            return []

        try:
            raw_events = await asyncio.wait_for(
                fetch_events(client, site_filter(author, kinds), timeout=self._timeouts.query),
                # fetch_events returns partial results at its own deadline
                timeout=self._timeouts.query + self._timeouts.connect,
            )
        except (TimeoutError, OSError, NostrSdkError) as e:
            self._logger.warning(
                "query_failed", relay=relay.url, error=str(e), error_type=type(e).__name__
            )
            return []
        finally:
            await shutdown_client(client)

        events = to_graph_events(raw_events, self._logger.bind(relay=relay.url))
        self._logger.debug("query_completed", relay=relay.url, events=len(events))
        return events

    async def connect(self, relay: Relay) -> NostrRelayConnection:
        """Open a publishing session with *relay*, retrying transient failures.

        Raises:
            ConnectivityError: If every attempt failed.
        """
        client = await retry_with_backoff(
            lambda: self._open(relay),
            self._retry,
            "connect",
            relay_url=relay.url,
        )
        return NostrRelayConnection(
            relay,
            client,
            keys=self._keys,
            timeouts=self._timeouts,
            retry=self._retry,
            logger=self._logger,
        )

    async def _open(self, relay: Relay) -> Client:
        """Single connection attempt, mapped onto the connectivity errors."""
        try:
            return await asyncio.wait_for(
                connect_relay(
                    relay,
                    self._keys,
                    timeout=self._timeouts.connect,
                    allow_insecure=self._allow_insecure,
                ),
                timeout=self._timeouts.connect * 2,
            )
        except ssl.SSLError as e:
            raise RelaySSLError(str(e), relay_url=relay.url) from e
        except TimeoutError as e:
            raise RelayTimeoutError(f"Connection timeout: {relay.url}", relay_url=relay.url) from e
        except (OSError, NostrSdkError) as e:
            raise ConnectivityError(str(e), relay_url=relay.url) from e
