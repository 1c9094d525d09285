"""Reconciliation plans and their summaries.

A [ReconciliationPlan][nwpublisher.services.common.plan.ReconciliationPlan]
is pure data: for each relay, which events to tombstone and which already
signed events to publish. It is produced by the sync planner or the cleanup
command and consumed by
[PlanExecutor][nwpublisher.services.common.executor.PlanExecutor].

Deletions are described by target ids and a reason; the tombstones
themselves are signed by the store at send time, so building a plan never
needs the private key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from nwpublisher.core.store import DeletionRequest, deletion_batches
from nwpublisher.models.constants import (
    DELETION_BATCH_SIZE,
    ENTRYPOINT_REPLACED_REASON,
    ORPHAN_DELETION_REASON,
    GraphLayer,
)
from nwpublisher.models.graph import (
    AssetEvent,
    EntrypointEvent,
    GraphEvent,
    ManifestEvent,
    SiteIndexEvent,
    sort_by_layer,
)


def _append_unique(target: list[Any], events: list[Any], seen: set[str]) -> None:
    for event in events:
        if event.id not in seen:
            seen.add(event.id)
            target.append(event)


@dataclass(slots=True)
class RelayPlan:
    """Changes for a single relay, split by graph layer.

    Attributes:
        relay: Normalized relay URL.
        delete_site_indexes: Site-indexes of orphaned versions on this relay.
        delete_manifests: Manifests on this relay that nothing kept needs.
        delete_assets: Assets on this relay that nothing kept needs.
        delete_entrypoints: Stale entrypoints, tombstoned in one request.
        publish_assets: Assets the relay lacks.
        publish_manifests: Manifests the relay lacks.
        publish_site_indexes: Site-indexes the relay lacks.
        publish_entrypoint: The current entrypoint, when the relay lacks one
            pointing at the current version.
        deletion_reason: Tombstone content for content deletions.
        entrypoint_reason: Tombstone content for entrypoint deletions.
    """

    relay: str
    delete_site_indexes: list[SiteIndexEvent] = field(default_factory=list)
    delete_manifests: list[ManifestEvent] = field(default_factory=list)
    delete_assets: list[AssetEvent] = field(default_factory=list)
    delete_entrypoints: list[EntrypointEvent] = field(default_factory=list)
    publish_assets: list[AssetEvent] = field(default_factory=list)
    publish_manifests: list[ManifestEvent] = field(default_factory=list)
    publish_site_indexes: list[SiteIndexEvent] = field(default_factory=list)
    publish_entrypoint: EntrypointEvent | None = None
    deletion_reason: str = ORPHAN_DELETION_REASON
    entrypoint_reason: str = ENTRYPOINT_REPLACED_REASON

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    @property
    def content_deletions(self) -> list[GraphEvent]:
        """Site-indexes, manifests and assets to delete, top layer first."""
        return [*self.delete_site_indexes, *self.delete_manifests, *self.delete_assets]

    @property
    def deletions(self) -> list[GraphEvent]:
        return [*self.delete_entrypoints, *self.content_deletions]

    @property
    def publications(self) -> list[GraphEvent]:
        """Events to publish, sorted asset-first so no layer precedes its children."""
        events: list[GraphEvent] = [
            *self.publish_assets,
            *self.publish_manifests,
            *self.publish_site_indexes,
        ]
        if self.publish_entrypoint is not None:
            events.append(self.publish_entrypoint)
        return sort_by_layer(events)

    @property
    def deletion_count(self) -> int:
        return len(self.deletions)

    @property
    def publication_count(self) -> int:
        return len(self.publications)

    @property
    def is_empty(self) -> bool:
        """A relay with nothing to delete or publish is already consistent."""
        return not self.deletions and not self.publications

    def deletion_requests(self, batch_size: int = DELETION_BATCH_SIZE) -> list[DeletionRequest]:
        """Tombstone requests for this relay.

        Stale entrypoints share a single request. Other deletions are
        batched at most *batch_size* ids per tombstone.
        """
        requests: list[DeletionRequest] = []
        if self.delete_entrypoints:
            requests.append(
                DeletionRequest(
                    tuple(e.id for e in self.delete_entrypoints),
                    self.entrypoint_reason,
                    tuple(sorted({e.kind for e in self.delete_entrypoints})),
                )
            )
        content = self.content_deletions
        if content:
            requests.extend(
                deletion_batches(
                    [e.id for e in content],
                    self.deletion_reason,
                    batch_size,
                    kinds={e.kind for e in content},
                )
            )
        return requests

    # -------------------------------------------------------------------------
    # Builders
    # -------------------------------------------------------------------------

    def add_deletions(self, events: list[GraphEvent]) -> None:
        """Route *events* into the per-layer deletion lists, skipping duplicates."""
        seen = {e.id for e in self.deletions}
        for event in events:
            if event.id in seen:
                continue
            seen.add(event.id)
            if isinstance(event, EntrypointEvent):
                self.delete_entrypoints.append(event)
            elif isinstance(event, SiteIndexEvent):
                self.delete_site_indexes.append(event)
            elif isinstance(event, ManifestEvent):
                self.delete_manifests.append(event)
            elif isinstance(event, AssetEvent):
                self.delete_assets.append(event)

    def add_publications(self, events: list[GraphEvent]) -> None:
        """Route *events* into the per-layer publication lists, skipping duplicates."""
        seen = {e.id for e in self.publications}
        _append_unique(self.publish_assets, [e for e in events if isinstance(e, AssetEvent)], seen)
        _append_unique(
            self.publish_manifests, [e for e in events if isinstance(e, ManifestEvent)], seen
        )
        _append_unique(
            self.publish_site_indexes, [e for e in events if isinstance(e, SiteIndexEvent)], seen
        )

    def summary(self) -> RelayPlanSummary:
        deletions_by_layer: dict[str, int] = {}
        for event in self.deletions:
            name = GraphLayer(event.layer).name.lower() if event.layer else str(event.kind)
            deletions_by_layer[name] = deletions_by_layer.get(name, 0) + 1
        publications_by_layer: dict[str, int] = {}
        for event in self.publications:
            name = GraphLayer(event.layer).name.lower() if event.layer else str(event.kind)
            publications_by_layer[name] = publications_by_layer.get(name, 0) + 1
        return RelayPlanSummary(
            relay=self.relay,
            deletions=self.deletion_count,
            publications=self.publication_count,
            already_consistent=self.is_empty,
            deletions_by_layer=deletions_by_layer,
            publications_by_layer=publications_by_layer,
        )


@dataclass(slots=True)
class ReconciliationPlan:
    """Per-relay plans in configured relay order.

    Attributes:
        relay_plans: Relay URL to its [RelayPlan][nwpublisher.services.common.plan.RelayPlan].
        notes: Operator-facing remarks collected while planning (for
            example an entrypoint whose target version has no full copy).
    """

    relay_plans: dict[str, RelayPlan] = field(default_factory=dict)
    notes: list[str] = field(default_factory=list)

    def plan_for(self, relay: str) -> RelayPlan:
        """Return the plan for *relay*, creating an empty one on first use."""
        plan = self.relay_plans.get(relay)
        if plan is None:
            plan = self.relay_plans[relay] = RelayPlan(relay=relay)
        return plan

    @property
    def is_empty(self) -> bool:
        return all(plan.is_empty for plan in self.relay_plans.values())

    def summary(self) -> PlanSummary:
        relays = tuple(plan.summary() for plan in self.relay_plans.values())
        return PlanSummary(
            relays=relays,
            total_deletions=sum(r.deletions for r in relays),
            total_publications=sum(r.publications for r in relays),
            relays_consistent=sum(1 for r in relays if r.already_consistent),
            notes=tuple(self.notes),
        )


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RelayPlanSummary:
    """Counts for one relay's plan."""

    relay: str
    deletions: int
    publications: int
    already_consistent: bool
    deletions_by_layer: dict[str, int] = field(default_factory=dict)
    publications_by_layer: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "relay": self.relay,
            "deletions": self.deletions,
            "publications": self.publications,
            "already_consistent": self.already_consistent,
            "deletions_by_layer": dict(self.deletions_by_layer),
            "publications_by_layer": dict(self.publications_by_layer),
        }


@dataclass(frozen=True, slots=True)
class PlanSummary:
    """Structured overview of a plan, rendered by the CLI as a table or JSON."""

    relays: tuple[RelayPlanSummary, ...]
    total_deletions: int
    total_publications: int
    relays_consistent: int
    notes: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.total_deletions == 0 and self.total_publications == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "relays": [r.to_dict() for r in self.relays],
            "total_deletions": self.total_deletions,
            "total_publications": self.total_publications,
            "relays_consistent": self.relays_consistent,
            "notes": list(self.notes),
        }

    def to_table(self) -> str:
        """Plain-text table, one row per relay, then totals and notes."""
        width = max([len("relay"), *(len(r.relay) for r in self.relays)])
        lines = [f"{'relay':<{width}}  {'delete':>6}  {'publish':>7}  status"]
        for r in self.relays:
            status = "consistent" if r.already_consistent else "changes"
            lines.append(f"{r.relay:<{width}}  {r.deletions:>6}  {r.publications:>7}  {status}")
        lines.append(f"{'total':<{width}}  {self.total_deletions:>6}  {self.total_publications:>7}")
        lines.extend(f"note: {note}" for note in self.notes)
        return "\n".join(lines)
