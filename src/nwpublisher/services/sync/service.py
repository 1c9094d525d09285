"""Sync command: make every relay hold the same copy of the site.

The workflow for one run:

1. Query all configured relays concurrently for the identity's site events
   ([collect_snapshot][nwpublisher.services.common.snapshot.collect_snapshot]).
2. Analyze the merged snapshot: current entrypoint, version table,
   per-relay completeness ([analyze_graph][nwpublisher.services.sync.analyzer.analyze_graph]).
3. Choose a source relay for each version
   ([select_sources][nwpublisher.services.sync.selector.select_sources]).
4. Build the per-relay plan
   ([build_sync_plan][nwpublisher.services.sync.planner.build_sync_plan]).
5. Unless this is a dry run, ask the operator to type ``SYNC`` and apply
   the plan with [PlanExecutor][nwpublisher.services.common.executor.PlanExecutor].

Note:
    Publications re-send the exact signed events found on the source relay.
    The private key is only used to sign tombstones.

Examples:
    ```python
    from nwpublisher.services import SyncCommand
    from nwpublisher.services.common import NostrRelayStore, TypedPhraseGate

    config = SyncCommand.parse_config(load_yaml("config/nwpublisher.yaml"))
    store = NostrRelayStore(keys=config.keys.keys, timeouts=config.timeouts)
    async with SyncCommand(config, store, gate=TypedPhraseGate()) as sync:
        report = await sync.run()
    ```
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from nwpublisher.core.base_command import BaseCommand
from nwpublisher.models.constants import CommandName, RunOutcome
from nwpublisher.services.common.confirm import SYNC_PHRASE
from nwpublisher.services.common.mixins import PlanApplyMixin
from nwpublisher.services.common.snapshot import collect_snapshot

from .analyzer import GraphAnalysis, analyze_graph
from .configs import SyncConfig
from .planner import build_sync_plan
from .selector import make_selector, select_sources


if TYPE_CHECKING:
    from nwpublisher.core.store import RelayEventStore
    from nwpublisher.services.common.confirm import ConfirmationGate
    from nwpublisher.services.common.executor import ExecutionSummary
    from nwpublisher.services.common.plan import PlanSummary, ReconciliationPlan


@dataclass(frozen=True, slots=True)
class SyncReport:
    """Structured result of one sync run.

    Attributes:
        outcome: How the run ended.
        analysis: Snapshot analysis the plan was built from.
        sources: Version key to source relay (``None`` when orphaned).
        plan: The per-relay plan.
        summary: Plan counts for display.
        execution: Execution results, when the plan ran.
    """

    outcome: RunOutcome
    analysis: GraphAnalysis
    sources: dict[str, str | None]
    plan: ReconciliationPlan
    summary: PlanSummary
    execution: ExecutionSummary | None = None

    def to_dict(self) -> dict[str, Any]:
        versions = []
        for key, version in self.analysis.versions.items():
            versions.append(
                {
                    "key": key,
                    "version": version.label,
                    "source": self.sources.get(key),
                    "relays": {
                        url: record.status.value
                        for url, record in self.analysis.completeness[key].items()
                    },
                }
            )
        return {
            "outcome": self.outcome.value,
            "current_version": self.analysis.entrypoints.target_key,
            "versions": versions,
            "plan": self.summary.to_dict(),
            "execution": self.execution.to_dict() if self.execution is not None else None,
        }


class SyncCommand(PlanApplyMixin, BaseCommand[SyncConfig, SyncReport]):
    """Reconcile the identity's site across every configured relay.

    See Also:
        [SyncConfig][nwpublisher.services.sync.SyncConfig]: Configuration
            model for this command.
    """

    COMMAND_NAME: ClassVar[CommandName] = CommandName.SYNC
    CONFIG_CLASS: ClassVar[type[SyncConfig]] = SyncConfig

    def __init__(
        self,
        config: SyncConfig,
        store: RelayEventStore,
        *,
        gate: ConfirmationGate | None = None,
        dry_run: bool = False,
    ) -> None:
        super().__init__(config=config, store=store)
        self._init_apply(gate, dry_run=dry_run)

    async def plan(self) -> tuple[GraphAnalysis, dict[str, str | None], ReconciliationPlan]:
        """Snapshot the relays and build the plan without executing it."""
        snapshot = await collect_snapshot(self._store, self.relays, self._config.keys.pubkey)
        analysis = analyze_graph(snapshot.events)
        selector = make_selector(self._config.source_policy, snapshot.latencies)
        sources = select_sources(analysis, selector)
        plan = build_sync_plan(analysis, sources)

        self._logger.info(
            "plan_built",
            versions=len(analysis.versions),
            orphaned=sum(1 for s in sources.values() if s is None),
            has_entrypoint=analysis.entrypoints.has_entrypoint,
            current=analysis.entrypoints.target_key,
        )
        for note in plan.notes:
            self._logger.warning("plan_note", note=note)
        return analysis, sources, plan

    async def run(self) -> SyncReport:
        self._logger.info("sync_started", relays=len(self.relays), dry_run=self._dry_run)

        analysis, sources, plan = await self.plan()
        summary = plan.summary()
        outcome, execution = await self.apply_plan(
            plan,
            self._config.execution,
            prompt=(
                f"About to delete {summary.total_deletions} and publish "
                f"{summary.total_publications} event(s) across {len(summary.relays)} relay(s)."
            ),
            phrase=SYNC_PHRASE,
        )

        self._logger.info("sync_completed", outcome=outcome.value)
        return SyncReport(
            outcome=outcome,
            analysis=analysis,
            sources=sources,
            plan=plan,
            summary=summary,
            execution=execution,
        )
