"""Concurrent snapshot of the site graph across relays."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from nwpublisher.core.exceptions import NwPublisherError
from nwpublisher.core.logger import Logger
from nwpublisher.models.constants import SITE_KINDS


if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from nwpublisher.core.store import RelayEventStore
    from nwpublisher.models.graph import GraphEvent
    from nwpublisher.models.relay import Relay


_logger = Logger("snapshot")


@dataclass(slots=True)
class Snapshot:
    """Events of one author as seen by each relay, in configured relay order.

    Attributes:
        events: Relay URL to the events that relay returned.
        latencies: Relay URL to query round-trip seconds; ``None`` when the
            relay returned nothing and may have been unreachable.
    """

    events: dict[str, list[GraphEvent]] = field(default_factory=dict)
    latencies: dict[str, float | None] = field(default_factory=dict)

    @property
    def relays(self) -> list[str]:
        return list(self.events)

    @property
    def total_events(self) -> int:
        return sum(len(events) for events in self.events.values())


async def collect_snapshot(
    store: RelayEventStore,
    relays: Sequence[Relay],
    author: str,
    kinds: Iterable[int] = SITE_KINDS,
) -> Snapshot:
    """Query every relay concurrently for *author*'s events of *kinds*.

    An unreachable relay contributes an empty list. Events by another
    author or of an unrequested kind are dropped, whatever the relay sent.
    """
    wanted = frozenset(int(k) for k in kinds)
    events: dict[str, list[GraphEvent]] = {}
    latencies: dict[str, float | None] = {}

    async def _query(relay: Relay) -> None:
        start = time.monotonic()
        try:
            received = await store.query(relay, wanted, author)
        except (NwPublisherError, OSError, TimeoutError) as e:
            _logger.warning("snapshot_query_failed", relay=relay.url, error=str(e))
            received = []
        elapsed = time.monotonic() - start
        kept = [e for e in received if e.pubkey == author and e.kind in wanted]
        if len(kept) != len(received):
            _logger.debug("foreign_events_dropped", relay=relay.url, count=len(received) - len(kept))
        events[relay.url] = kept
        latencies[relay.url] = elapsed if kept else None

    async with asyncio.TaskGroup() as tg:
        for relay in relays:
            tg.create_task(_query(relay))

    snapshot = Snapshot(
        events={relay.url: events.get(relay.url, []) for relay in relays},
        latencies={relay.url: latencies.get(relay.url) for relay in relays},
    )
    _logger.info("snapshot_collected", relays=len(relays), events=snapshot.total_events)
    return snapshot
