"""Reusable command mixins.

See Also:
    [BaseCommand][nwpublisher.core.base_command.BaseCommand]: The base class
        mixins are composed with via multiple inheritance.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from nwpublisher.models.constants import RunOutcome

from .executor import PlanExecutor


if TYPE_CHECKING:
    from nwpublisher.core.logger import Logger
    from nwpublisher.core.store import RelayEventStore

    from .configs import ExecutionConfig
    from .confirm import ConfirmationGate
    from .executor import ExecutionSummary
    from .plan import ReconciliationPlan


class PlanApplyMixin:
    """Dry-run, confirmation and execution of a reconciliation plan.

    Host classes provide ``_store``, ``_logger``, ``is_running`` and the
    constructor arguments stored by
    [_init_apply()][nwpublisher.services.common.mixins.PlanApplyMixin._init_apply].
    """

    _store: RelayEventStore
    _logger: Logger
    _gate: ConfirmationGate | None
    _dry_run: bool
    is_running: bool

    def _init_apply(self, gate: ConfirmationGate | None, *, dry_run: bool) -> None:
        self._gate = gate
        self._dry_run = dry_run

    async def apply_plan(
        self,
        plan: ReconciliationPlan,
        execution: ExecutionConfig,
        *,
        prompt: str,
        phrase: str,
    ) -> tuple[RunOutcome, ExecutionSummary | None]:
        """Run *plan* once the gate approves it.

        Empty plans and dry runs never reach the gate. A missing gate
        counts as a refusal.
        """
        if plan.is_empty:
            self._logger.info("plan_empty")
            return RunOutcome.NOTHING_TO_DO, None

        if self._dry_run:
            self._logger.info("dry_run_complete")
            return RunOutcome.DRY_RUN, None

        approved = False
        if self._gate is not None:
            message = f"{plan.summary().to_table()}\n\n{prompt}"
            approved = await asyncio.to_thread(self._gate.confirm, message, phrase)
        if not approved:
            self._logger.info("plan_declined")
            return RunOutcome.DECLINED, None

        executor = PlanExecutor(
            self._store,
            max_concurrency=execution.max_concurrency,
            deletion_batch_size=execution.deletion_batch_size,
            should_continue=lambda: self.is_running,
            logger=self._logger,
        )
        summary = await executor.execute(plan)
        return (RunOutcome.ABORTED if summary.aborted else RunOutcome.EXECUTED), summary
