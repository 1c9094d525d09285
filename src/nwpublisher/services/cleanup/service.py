"""Cleanup command: tombstone site events that should no longer exist.

Three modes share one pipeline (snapshot, plan, confirm with ``DELETE``,
execute):

- ``orphans`` runs the
  [orphan detector][nwpublisher.services.cleanup.orphans.detect_orphans]
  on each relay and deletes what it reports.
- ``version`` deletes one version: its site-index, the entrypoints pointing
  at it, and its manifests and assets, keeping anything another version
  still references.
- ``all`` deletes every site event of the identity.

Tombstones are only sent to relays that returned the targeted events.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from nwpublisher.core.base_command import BaseCommand
from nwpublisher.core.exceptions import VersionNotFoundError
from nwpublisher.models.constants import (
    FULL_CLEANUP_REASON,
    VERSION_DELETION_REASON,
    CommandName,
    RunOutcome,
)
from nwpublisher.models.graph import GraphEvent, ManifestEvent, referenced_assets_of
from nwpublisher.services.common.confirm import DELETE_PHRASE
from nwpublisher.services.common.mixins import PlanApplyMixin
from nwpublisher.services.common.plan import ReconciliationPlan
from nwpublisher.services.common.snapshot import collect_snapshot
from nwpublisher.services.sync.analyzer import RelayContents, build_version_table

from .configs import CleanupConfig, CleanupMode
from .orphans import OrphanReport, detect_orphans_per_relay


if TYPE_CHECKING:
    from nwpublisher.core.store import RelayEventStore
    from nwpublisher.services.common.confirm import ConfirmationGate
    from nwpublisher.services.common.executor import ExecutionSummary
    from nwpublisher.services.common.plan import PlanSummary


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def build_orphan_plan(reports: Mapping[str, OrphanReport]) -> ReconciliationPlan:
    plan = ReconciliationPlan()
    for url, report in reports.items():
        plan.plan_for(url).add_deletions(report.events)
    return plan


def build_full_cleanup_plan(relay_events: Mapping[str, Sequence[GraphEvent]]) -> ReconciliationPlan:
    plan = ReconciliationPlan()
    for url, events in relay_events.items():
        relay_plan = plan.plan_for(url)
        relay_plan.deletion_reason = FULL_CLEANUP_REASON
        relay_plan.entrypoint_reason = FULL_CLEANUP_REASON
        relay_plan.add_deletions(list(events))
    return plan


def version_targets(
    relay_events: Mapping[str, Sequence[GraphEvent]], version: str
) -> set[str]:
    """Ids to delete for *version* (label or key) across all relays.

    Manifests and assets also referenced by another version are kept.

    Raises:
        VersionNotFoundError: If no relay holds a matching site-index.
    """
    relays = {url: RelayContents.from_events(url, events) for url, events in relay_events.items()}
    table = build_version_table(relays)
    doomed_keys = {key for key, info in table.items() if version in (key, info.label)}
    if not doomed_keys:
        raise VersionNotFoundError(version)

    manifests: dict[str, ManifestEvent] = {}
    for contents in relays.values():
        for manifest_id, manifest in contents.manifests.items():
            manifests.setdefault(manifest_id, manifest)

    def _closure(keys: set[str]) -> tuple[set[str], set[str]]:
        manifest_ids = {m for key in keys for m in table[key].manifest_ids}
        asset_ids = {
            a for m in manifest_ids if m in manifests for a in referenced_assets_of(manifests[m])
        }
        return manifest_ids, asset_ids

    doomed_manifests, doomed_assets = _closure(doomed_keys)
    kept_manifests, kept_assets = _closure(set(table) - doomed_keys)

    targets = (doomed_manifests - kept_manifests) | (doomed_assets - kept_assets)
    for contents in relays.values():
        for key in doomed_keys:
            targets.update(e.id for e in contents.site_indexes.get(key, ()))
        targets.update(e.id for e in contents.entrypoints if e.target_key in doomed_keys)
    return targets


def build_version_plan(
    relay_events: Mapping[str, Sequence[GraphEvent]], version: str
) -> ReconciliationPlan:
    targets = version_targets(relay_events, version)
    plan = ReconciliationPlan()
    for url, events in relay_events.items():
        relay_plan = plan.plan_for(url)
        relay_plan.deletion_reason = VERSION_DELETION_REASON
        relay_plan.entrypoint_reason = VERSION_DELETION_REASON
        relay_plan.add_deletions([e for e in events if e.id in targets])
    return plan


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CleanupReport:
    """Structured result of one cleanup run."""

    outcome: RunOutcome
    mode: CleanupMode
    plan: ReconciliationPlan
    summary: PlanSummary
    orphans: dict[str, OrphanReport] = field(default_factory=dict)
    execution: ExecutionSummary | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "mode": self.mode.value,
            "plan": self.summary.to_dict(),
            "orphans": [r.to_dict() for r in self.orphans.values()],
            "execution": self.execution.to_dict() if self.execution is not None else None,
        }


class CleanupCommand(PlanApplyMixin, BaseCommand[CleanupConfig, CleanupReport]):
    """Delete orphaned content, one version, or the whole site.

    See Also:
        [CleanupConfig][nwpublisher.services.cleanup.CleanupConfig]:
            Configuration model for this command.
    """

    COMMAND_NAME: ClassVar[CommandName] = CommandName.CLEANUP
    CONFIG_CLASS: ClassVar[type[CleanupConfig]] = CleanupConfig

    def __init__(
        self,
        config: CleanupConfig,
        store: RelayEventStore,
        *,
        gate: ConfirmationGate | None = None,
        dry_run: bool = False,
    ) -> None:
        super().__init__(config=config, store=store)
        self._init_apply(gate, dry_run=dry_run)

    async def run(self) -> CleanupReport:
        mode = self._config.mode
        targets = self._config.targets
        self._logger.info("cleanup_started", mode=mode.value, relays=len(targets))

        snapshot = await collect_snapshot(self._store, targets, self._config.keys.pubkey)

        orphans: dict[str, OrphanReport] = {}
        if mode == CleanupMode.ALL:
            plan = build_full_cleanup_plan(snapshot.events)
        elif mode == CleanupMode.VERSION:
            plan = build_version_plan(snapshot.events, self._config.version or "")
        else:
            orphans = detect_orphans_per_relay(snapshot.events)
            plan = build_orphan_plan(orphans)

        summary = plan.summary()
        outcome, execution = await self.apply_plan(
            plan,
            self._config.execution,
            prompt=(
                f"About to permanently request deletion of {summary.total_deletions} "
                f"event(s) from {len(summary.relays)} relay(s)."
            ),
            phrase=DELETE_PHRASE,
        )

        self._logger.info("cleanup_completed", outcome=outcome.value)
        return CleanupReport(
            outcome=outcome,
            mode=mode,
            plan=plan,
            summary=summary,
            orphans=orphans,
            execution=execution,
        )

