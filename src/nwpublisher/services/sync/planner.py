"""Turn a graph analysis into per-relay reconciliation plans.

Rules, applied to every relay:

- A version with a source relay is copied: the relay receives exactly the
  events of the version's closure it lacks (site-index by key, manifests
  and assets by id). Events are taken from the source relay unchanged.
- A version without a source is orphaned. Wherever any part of it is
  present, its site-index is tombstoned, along with its manifests and
  assets on that relay unless a sourced version still needs them.
- Entrypoints pointing anywhere but the current target are tombstoned in
  one request, and a relay without a current entrypoint receives the
  newest entrypoint event itself. This only happens when the current
  target version has a source: an entrypoint is never spread to relays
  for a version no relay can serve.

The function is pure. The same analysis and sources always give the same
plan.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from nwpublisher.models.graph import GraphEvent, SiteIndexEvent, referenced_assets_of
from nwpublisher.services.common.plan import ReconciliationPlan


if TYPE_CHECKING:
    from .analyzer import GraphAnalysis, RelayContents, VersionInfo


def version_closure(version: VersionInfo, source: RelayContents) -> list[GraphEvent]:
    """Events of *version* held by *source*, assets first.

    Args:
        version: Version whose closure is collected.
        source: Contents of a relay where the version is complete. Ids
            absent from *source* are skipped.
    """
    site_index = source.site_index(version.key)
    manifests = [source.manifests[m] for m in version.manifest_ids if m in source.manifests]

    assets: dict[str, GraphEvent] = {}
    for manifest in manifests:
        for asset_id in referenced_assets_of(manifest):
            asset = source.assets.get(asset_id)
            if asset is not None:
                assets.setdefault(asset_id, asset)

    closure: list[GraphEvent] = [*assets.values(), *manifests]
    if site_index is not None:
        closure.append(site_index)
    return closure


def build_sync_plan(
    analysis: GraphAnalysis, sources: Mapping[str, str | None]
) -> ReconciliationPlan:
    """Plan every relay of *analysis* toward the sourced versions.

    Args:
        analysis: Snapshot analysis.
        sources: Version key to its source relay, ``None`` for orphaned
            versions. Versions missing from the mapping count as orphaned.

    Returns:
        A plan with one entry per relay, in configured order.
    """
    plan = ReconciliationPlan()
    for url in analysis.relays:
        plan.plan_for(url)

    closures: dict[str, list[GraphEvent]] = {}
    for key, source in sources.items():
        if source is not None and key in analysis.versions:
            closures[key] = version_closure(analysis.versions[key], analysis.relays[source])
    protected = {event.id for closure in closures.values() for event in closure}

    for key, version in analysis.versions.items():
        if key in closures:
            _plan_copies(plan, analysis, version, closures[key])
        else:
            _plan_orphan(plan, analysis, version, protected)

    _plan_entrypoints(plan, analysis, closures)
    return plan


def _plan_copies(
    plan: ReconciliationPlan,
    analysis: GraphAnalysis,
    version: VersionInfo,
    closure: list[GraphEvent],
) -> None:
    for url, contents in analysis.relays.items():
        missing = [
            event
            for event in closure
            if not isinstance(event, SiteIndexEvent) and not contents.has(event.id)
        ]
        # site-indexes are matched by addressable key, not by id
        if contents.site_index(version.key) is None:
            missing.extend(e for e in closure if isinstance(e, SiteIndexEvent))
        plan.plan_for(url).add_publications(missing)


def _plan_orphan(
    plan: ReconciliationPlan,
    analysis: GraphAnalysis,
    version: VersionInfo,
    protected: set[str],
) -> None:
    # Asset ids are learned from the manifests wherever they were seen, so a
    # relay holding only assets of the version is cleaned as well
    manifest_ids = set(version.manifest_ids)
    asset_ids: set[str] = set()
    for contents in analysis.relays.values():
        for manifest_id in manifest_ids:
            manifest = contents.manifests.get(manifest_id)
            if manifest is not None:
                asset_ids.update(referenced_assets_of(manifest))
    manifest_ids -= protected
    asset_ids -= protected

    removed_from = 0
    for url, contents in analysis.relays.items():
        doomed: list[GraphEvent] = list(contents.site_indexes.get(version.key, ()))
        held: list[GraphEvent | None] = [contents.manifests.get(m) for m in sorted(manifest_ids)]
        held.extend(contents.assets.get(a) for a in sorted(asset_ids))
        doomed.extend(event for event in held if event is not None)
        if doomed:
            plan.plan_for(url).add_deletions(doomed)
            removed_from += 1

    if removed_from:
        plan.notes.append(
            f"version {version.label} has no complete copy on any relay; "
            f"removing it from {removed_from} relay(s)"
        )


def _plan_entrypoints(
    plan: ReconciliationPlan,
    analysis: GraphAnalysis,
    closures: Mapping[str, list[GraphEvent]],
) -> None:
    entrypoints = analysis.entrypoints
    if entrypoints.newest is None:
        return

    target = entrypoints.target_key
    if target not in closures:
        plan.notes.append(
            f"current entrypoint points at {target}, which no relay holds completely; "
            "entrypoints left unchanged"
        )
        return

    for url in analysis.relays:
        relay_plan = plan.plan_for(url)
        stale = entrypoints.stale_on(url)
        if stale:
            relay_plan.add_deletions(list(stale))
        if not entrypoints.current_on(url):
            relay_plan.publish_entrypoint = entrypoints.newest
