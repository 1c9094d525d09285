"""Status command: connectivity and site-event counts per relay.

For every configured relay, a connection is opened and timed, then the
identity's site events are counted by kind. Relays missing an entrypoint
or any site-index are flagged so the operator knows where a ``sync`` is
due.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import Field

from nwpublisher.core.base_command import BaseCommand, BaseCommandConfig
from nwpublisher.core.exceptions import ConnectivityError
from nwpublisher.models.constants import SITE_KINDS, CommandName, EventKind
from nwpublisher.services.common.configs import AuthorConfig
from nwpublisher.services.sync.analyzer import analyze_graph


if TYPE_CHECKING:
    from nwpublisher.core.store import RelayEventStore
    from nwpublisher.models.graph import GraphEvent
    from nwpublisher.models.relay import Relay


class StatusConfig(BaseCommandConfig):
    """Status command configuration."""

    author: AuthorConfig = Field(default_factory=lambda: AuthorConfig.model_validate({}))


@dataclass(frozen=True, slots=True)
class RelayStatus:
    """Health of one relay for the identity's site.

    Attributes:
        relay: Relay URL.
        connected: Whether a session could be opened.
        latency_ms: Connection time in milliseconds, when connected.
        error: Connection error, when not connected.
        counts: Event kind name to number of events held.
    """

    relay: str
    connected: bool
    latency_ms: float | None = None
    error: str | None = None
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def has_entrypoint(self) -> bool:
        return self.counts.get(EventKind.ENTRYPOINT.name.lower(), 0) > 0

    @property
    def has_site_index(self) -> bool:
        return self.counts.get(EventKind.SITE_INDEX.name.lower(), 0) > 0

    @property
    def warnings(self) -> list[str]:
        if not self.connected:
            return []
        found = []
        if not self.has_entrypoint:
            found.append("no entrypoint")
        if not self.has_site_index:
            found.append("no site index")
        return found

    def to_dict(self) -> dict[str, Any]:
        return {
            "relay": self.relay,
            "connected": self.connected,
            "latency_ms": self.latency_ms,
            "error": self.error,
            "counts": dict(self.counts),
            "warnings": self.warnings,
        }


@dataclass(frozen=True, slots=True)
class StatusReport:
    pubkey: str
    relays: tuple[RelayStatus, ...]
    current_version: str | None = None

    @property
    def reachable(self) -> int:
        return sum(1 for r in self.relays if r.connected)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pubkey": self.pubkey,
            "current_version": self.current_version,
            "reachable": self.reachable,
            "relays": [r.to_dict() for r in self.relays],
        }


def count_by_kind(events: list[GraphEvent]) -> dict[str, int]:
    """Event counts keyed by lowercase kind name, every site kind included."""
    counts = {EventKind(kind).name.lower(): 0 for kind in SITE_KINDS}
    for event in events:
        name = EventKind(event.kind).name.lower()
        counts[name] = counts.get(name, 0) + 1
    return counts


class StatusCommand(BaseCommand[StatusConfig, StatusReport]):
    """Report connectivity, latency and site-event counts for each relay."""

    COMMAND_NAME: ClassVar[CommandName] = CommandName.STATUS
    CONFIG_CLASS: ClassVar[type[StatusConfig]] = StatusConfig

    async def run(self) -> StatusReport:
        pubkey = self._config.author.pubkey
        self._logger.info("status_started", relays=len(self.relays), pubkey=pubkey)

        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(self.probe(relay, pubkey)) for relay in self.relays]
        statuses = [t.result() for t in tasks]
        events = {status.relay: task_events for status, task_events in statuses}

        analysis = analyze_graph(events)
        current = analysis.current_version
        report = StatusReport(
            pubkey=pubkey,
            relays=tuple(status for status, _ in statuses),
            current_version=current.label if current is not None else None,
        )
        self._logger.info(
            "status_completed", reachable=report.reachable, total=len(report.relays)
        )
        return report

    async def probe(self, relay: Relay, pubkey: str) -> tuple[RelayStatus, list[GraphEvent]]:
        """Time a connection to *relay*, then count the site events it holds."""
        start = time.monotonic()
        try:
            connection = await self._store.connect(relay)
        except ConnectivityError as e:
            self._logger.warning("relay_unreachable", relay=relay.url, error=str(e))
            return RelayStatus(relay=relay.url, connected=False, error=str(e)), []
        latency_ms = round((time.monotonic() - start) * 1000, 1)
        await connection.close()

        events = await self._store.query(relay, SITE_KINDS, pubkey)
        events = [e for e in events if e.pubkey == pubkey]
        status = RelayStatus(
            relay=relay.url,
            connected=True,
            latency_ms=latency_ms,
            counts=count_by_kind(events),
        )
        return status, events
