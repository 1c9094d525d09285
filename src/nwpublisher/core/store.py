"""Relay event store interface.

The reconciliation engine talks to relays only through this interface:
a connect/close lifecycle and three verbs (``query``, ``publish``,
``delete``). It never sees sockets, subscription ids, or any other
transport detail, which keeps the analyzer, planner, and executor
testable against an in-memory fake.

See Also:
    [NostrRelayStore][nwpublisher.services.common.store.NostrRelayStore]:
        Implementation over ``nostr_sdk.Client``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from nwpublisher.models.graph import GraphEvent  # noqa: TC001
from nwpublisher.models.relay import Relay  # noqa: TC001


@dataclass(frozen=True, slots=True)
class PublishResult:
    """Outcome of sending one event (or one tombstone) to one relay.

    Attributes:
        event_id: Id of the event that was sent.
        accepted: Whether the relay acknowledged the event.
        message: Rejection or error message when not accepted.
    """

    event_id: str
    accepted: bool
    message: str | None = None


@dataclass(frozen=True, slots=True)
class DeletionRequest:
    """Unsigned deletion request: the ids to tombstone and why.

    The plan builder stays pure by describing deletions as data. The store
    signs the tombstone at send time.
    """

    target_ids: tuple[str, ...]
    reason: str
    kinds: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        if not self.target_ids:
            raise ValueError("DeletionRequest requires at least one target id")


@runtime_checkable
class RelayConnection(Protocol):
    """An open session with a single relay."""

    @property
    def relay(self) -> Relay: ...

    async def publish(self, event: GraphEvent) -> PublishResult:
        """Send an already-signed event unchanged (same id)."""
        ...

    async def delete(self, request: DeletionRequest) -> PublishResult:
        """Sign a tombstone for ``request.target_ids`` and send it."""
        ...

    async def close(self) -> None: ...


@runtime_checkable
class RelayEventStore(Protocol):
    """Best-effort, timeout-bounded access to the relays of one identity."""

    async def query(self, relay: Relay, kinds: Iterable[int], author: str) -> list[GraphEvent]:
        """Return every event of *kinds* by *author* held by *relay*.

        Must return within a bounded time. An unreachable relay or a query
        timeout yields the events received so far (possibly none) and
        never raises.
        """
        ...

    async def connect(self, relay: Relay) -> RelayConnection:
        """Open a session for publishing and deleting.

        Raises:
            ConnectivityError: If the relay cannot be reached.
        """
        ...


def deletion_batches(
    target_ids: Sequence[str],
    reason: str,
    batch_size: int,
    kinds: Iterable[int] = (),
) -> list[DeletionRequest]:
    """Split *target_ids* into requests of at most *batch_size* ids each."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    kinds_tuple = tuple(sorted(set(kinds)))
    return [
        DeletionRequest(tuple(target_ids[i : i + batch_size]), reason, kinds_tuple)
        for i in range(0, len(target_ids), batch_size)
    ]
