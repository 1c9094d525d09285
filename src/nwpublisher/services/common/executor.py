"""Apply a reconciliation plan to the relays.

Each relay moves through
``idle -> connecting -> deleting -> publishing -> done``, or ends in
``connection_failed`` when no session can be opened, in which case the
relay's whole delta counts as failed. Tombstones are sent and acknowledged
before any publication starts, and publications go asset-first, so a relay
never holds a parent before its children.

Relays are processed with ``asyncio.TaskGroup`` behind a semaphore of
``max_concurrency``; each task returns its own
[RelayExecution][nwpublisher.services.common.executor.RelayExecution] and
the results are merged only after every task finished. A shutdown request
stops relays that have not started yet; a relay already in progress runs
to completion.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from nwpublisher.core.exceptions import ConnectivityError, NwPublisherError
from nwpublisher.core.logger import Logger
from nwpublisher.models.constants import DELETION_BATCH_SIZE, RelayState
from nwpublisher.models.relay import Relay


if TYPE_CHECKING:
    from nwpublisher.core.store import DeletionRequest, RelayConnection, RelayEventStore
    from nwpublisher.models.graph import GraphEvent

    from .plan import ReconciliationPlan, RelayPlan


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EventOutcome:
    """Result of one tombstone or one publication.

    Attributes:
        action: ``"delete"`` or ``"publish"``.
        event_ids: Published id, or the ids a tombstone targeted.
        accepted: Whether the relay acknowledged it.
        message: Rejection or error text.
    """

    action: str
    event_ids: tuple[str, ...]
    accepted: bool
    message: str | None = None


@dataclass(slots=True)
class RelayExecution:
    """What happened on one relay."""

    relay: str
    state: RelayState = RelayState.IDLE
    deleted: int = 0
    published: int = 0
    failed: int = 0
    error: str | None = None
    outcomes: list[EventOutcome] = field(default_factory=list)

    @property
    def updated(self) -> bool:
        return self.deleted + self.published > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "relay": self.relay,
            "state": self.state.value,
            "deleted": self.deleted,
            "published": self.published,
            "failed": self.failed,
            "error": self.error,
        }


@dataclass(frozen=True, slots=True)
class ExecutionSummary:
    """Totals across all relays of one execution."""

    relays: tuple[RelayExecution, ...]
    total_deleted: int
    total_published: int
    total_failed: int
    relays_updated: int
    relays_consistent: int
    relays_failed: int
    aborted: bool = False

    @classmethod
    def merge(
        cls, executions: list[RelayExecution], consistent: int, *, aborted: bool = False
    ) -> ExecutionSummary:
        return cls(
            relays=tuple(executions),
            total_deleted=sum(e.deleted for e in executions),
            total_published=sum(e.published for e in executions),
            total_failed=sum(e.failed for e in executions),
            relays_updated=sum(1 for e in executions if e.updated),
            relays_consistent=consistent,
            relays_failed=sum(1 for e in executions if e.state == RelayState.CONNECTION_FAILED),
            aborted=aborted,
        )

    @property
    def succeeded(self) -> bool:
        return self.total_failed == 0 and not self.aborted

    def to_dict(self) -> dict[str, Any]:
        return {
            "relays": [e.to_dict() for e in self.relays],
            "total_deleted": self.total_deleted,
            "total_published": self.total_published,
            "total_failed": self.total_failed,
            "relays_updated": self.relays_updated,
            "relays_consistent": self.relays_consistent,
            "relays_failed": self.relays_failed,
            "aborted": self.aborted,
        }


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class PlanExecutor:
    """Runs a confirmed [ReconciliationPlan][nwpublisher.services.common.plan.ReconciliationPlan].

    Attributes:
        _store: Relay access.
        _max_concurrency: Relays processed at once.
        _batch_size: Target ids per tombstone.
        _should_continue: Polled before each relay starts; returning
            ``False`` skips the relays not yet started.
    """

    def __init__(
        self,
        store: RelayEventStore,
        *,
        max_concurrency: int = 1,
        deletion_batch_size: int = DELETION_BATCH_SIZE,
        should_continue: Callable[[], bool] | None = None,
        logger: Logger | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self._store = store
        self._max_concurrency = max_concurrency
        self._batch_size = deletion_batch_size
        self._should_continue = should_continue or (lambda: True)
        self._logger = logger or Logger("executor")

    async def execute(self, plan: ReconciliationPlan) -> ExecutionSummary:
        """Apply *plan* and return the merged per-relay results.

        Relays with an empty plan are not contacted and count as consistent.
        """
        pending = [p for p in plan.relay_plans.values() if not p.is_empty]
        consistent = len(plan.relay_plans) - len(pending)
        semaphore = asyncio.Semaphore(self._max_concurrency)

        self._logger.info(
            "execution_started",
            relays=len(pending),
            consistent=consistent,
            max_concurrency=self._max_concurrency,
        )

        async def _bounded(relay_plan: RelayPlan) -> RelayExecution | None:
            async with semaphore:
                if not self._should_continue():
                    self._logger.info("relay_skipped_shutdown", relay=relay_plan.relay)
                    return None
                return await self.execute_relay(relay_plan)

        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(_bounded(p)) for p in pending]

        executions = [r for r in (t.result() for t in tasks) if r is not None]
        aborted = len(executions) < len(pending)
        summary = ExecutionSummary.merge(executions, consistent, aborted=aborted)

        self._logger.info(
            "execution_completed",
            deleted=summary.total_deleted,
            published=summary.total_published,
            failed=summary.total_failed,
            relays_updated=summary.relays_updated,
            relays_failed=summary.relays_failed,
            aborted=aborted,
        )
        return summary

    async def execute_relay(self, relay_plan: RelayPlan) -> RelayExecution:
        """Apply one relay's plan: every deletion first, then publications by layer."""
        execution = RelayExecution(relay=relay_plan.relay)
        if relay_plan.is_empty:
            execution.state = RelayState.DONE
            return execution

        requests = relay_plan.deletion_requests(self._batch_size)
        publications = relay_plan.publications

        execution.state = RelayState.CONNECTING
        try:
            connection = await self._store.connect(Relay(relay_plan.relay))
        except ConnectivityError as e:
            execution.state = RelayState.CONNECTION_FAILED
            execution.error = str(e)
            execution.failed = sum(len(r.target_ids) for r in requests) + len(publications)
            self._logger.warning(
                "relay_connection_failed",
                relay=relay_plan.relay,
                error=str(e),
                failed=execution.failed,
            )
            return execution

        try:
            execution.state = RelayState.DELETING
            for request in requests:
                await self._delete(connection, request, execution)

            execution.state = RelayState.PUBLISHING
            for event in publications:
                await self._publish(connection, event, execution)

            execution.state = RelayState.DONE
        finally:
            await connection.close()

        self._logger.info(
            "relay_completed",
            relay=relay_plan.relay,
            deleted=execution.deleted,
            published=execution.published,
            failed=execution.failed,
        )
        return execution

    async def _delete(
        self,
        connection: RelayConnection,
        request: DeletionRequest,
        execution: RelayExecution,
    ) -> None:
        target_ids = request.target_ids
        try:
            result = await connection.delete(request)
            accepted, message = result.accepted, result.message
        except NwPublisherError as e:
            accepted, message = False, str(e)

        execution.outcomes.append(EventOutcome("delete", target_ids, accepted, message))
        if accepted:
            execution.deleted += len(target_ids)
        else:
            execution.failed += len(target_ids)
            self._logger.warning(
                "relay_delete_failed", relay=execution.relay, targets=len(target_ids), error=message
            )

    async def _publish(
        self, connection: RelayConnection, event: GraphEvent, execution: RelayExecution
    ) -> None:
        try:
            result = await connection.publish(event)
            accepted, message = result.accepted, result.message
        except NwPublisherError as e:
            accepted, message = False, str(e)

        execution.outcomes.append(EventOutcome("publish", (event.id,), accepted, message))
        if accepted:
            execution.published += 1
        else:
            execution.failed += 1
            self._logger.warning(
                "relay_publish_failed",
                relay=execution.relay,
                event_id=event.id,
                kind=event.kind,
                error=message,
            )
