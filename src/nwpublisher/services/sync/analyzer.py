"""Graph analysis over a multi-relay snapshot.

Pure functions, no I/O. Given the events each relay returned, the analysis
answers three questions:

1. Which entrypoint is current? The newest by ``created_at`` across all
   relays, ties broken by the smaller event id.
2. Which versions exist? Site-indexes grouped by their addressable key,
   with the relays holding each one.
3. For every (version, relay) pair, is the version's closure present?
   The site-index, every manifest it routes to, and every asset those
   manifests reference must be there under the exact referenced ids.

Note:
    Only manifests actually present on a relay reveal which assets they
    reference, so the asset check covers the assets of present manifests.
    A missing manifest already makes the version incomplete.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType

from nwpublisher.models.constants import Completeness
from nwpublisher.models.graph import (
    AssetEvent,
    EntrypointEvent,
    GraphEvent,
    ManifestEvent,
    SiteIndexEvent,
    referenced_assets_of,
    referenced_manifests_of,
    version_of,
)


# ---------------------------------------------------------------------------
# Relay contents
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RelayContents:
    """Events of one relay, indexed for lookups by id and by key."""

    relay: str
    events: Mapping[str, GraphEvent]
    assets: Mapping[str, AssetEvent]
    manifests: Mapping[str, ManifestEvent]
    site_indexes: Mapping[str, tuple[SiteIndexEvent, ...]]
    entrypoints: tuple[EntrypointEvent, ...]

    @classmethod
    def from_events(cls, relay: str, events: Sequence[GraphEvent]) -> RelayContents:
        by_id: dict[str, GraphEvent] = {}
        assets: dict[str, AssetEvent] = {}
        manifests: dict[str, ManifestEvent] = {}
        site_indexes: dict[str, list[SiteIndexEvent]] = {}
        entrypoints: list[EntrypointEvent] = []
        for event in events:
            if event.id in by_id:
                continue
            by_id[event.id] = event
            if isinstance(event, AssetEvent):
                assets[event.id] = event
            elif isinstance(event, ManifestEvent):
                manifests[event.id] = event
            elif isinstance(event, SiteIndexEvent):
                site_indexes.setdefault(event.version_key, []).append(event)
            elif isinstance(event, EntrypointEvent):
                entrypoints.append(event)
        return cls(
            relay=relay,
            events=MappingProxyType(by_id),
            assets=MappingProxyType(assets),
            manifests=MappingProxyType(manifests),
            site_indexes=MappingProxyType(
                {key: tuple(sorted(v, key=_newest_first)) for key, v in site_indexes.items()}
            ),
            entrypoints=tuple(entrypoints),
        )

    def has(self, event_id: str) -> bool:
        return event_id in self.events

    def site_index(self, version_key: str) -> SiteIndexEvent | None:
        """Newest site-index on this relay for *version_key*."""
        found = self.site_indexes.get(version_key)
        return found[0] if found else None


def _newest_first(event: GraphEvent) -> tuple[int, str]:
    return (-event.created_at, event.id)


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EntrypointAnalysis:
    """Current entrypoint and where each relay's entrypoints point.

    Attributes:
        newest: Globally newest entrypoint, or ``None`` when no relay has one.
        target_key: Site-index key the newest entrypoint points at.
        by_relay: Relay URL to the entrypoints that relay holds.
    """

    newest: EntrypointEvent | None
    target_key: str | None
    by_relay: Mapping[str, tuple[EntrypointEvent, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def has_entrypoint(self) -> bool:
        return self.newest is not None

    def stale_on(self, relay: str) -> list[EntrypointEvent]:
        """Entrypoints on *relay* that point anywhere but the current target."""
        return [e for e in self.by_relay.get(relay, ()) if e.target_key != self.target_key]

    def current_on(self, relay: str) -> bool:
        """Whether *relay* holds an entrypoint pointing at the current target."""
        return any(e.target_key == self.target_key for e in self.by_relay.get(relay, ()))


def analyze_entrypoints(relays: Mapping[str, RelayContents]) -> EntrypointAnalysis:
    """Pick the newest entrypoint across *relays*.

    Entrypoints without a well-formed address cannot be current. Their
    relays still list them so they can be replaced.
    """
    by_relay = {url: contents.entrypoints for url, contents in relays.items()}
    candidates = [
        e for entrypoints in by_relay.values() for e in entrypoints if e.target_key is not None
    ]
    newest = min(candidates, key=_newest_first, default=None)
    return EntrypointAnalysis(
        newest=newest,
        target_key=newest.target_key if newest is not None else None,
        by_relay=MappingProxyType(by_relay),
    )


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SiteIndexOccurrence:
    relay: str
    event: SiteIndexEvent

    @property
    def key(self) -> str:
        return self.event.version_key


@dataclass(frozen=True, slots=True)
class VersionInfo:
    """One site version and every relay holding its site-index.

    Attributes:
        key: Addressable key identifying the version.
        label: Human version label (the ``version`` field or a fallback).
        occurrences: One entry per relay, in relay order.
        manifest_ids: Union of manifest ids declared by the occurrences.
        created_at: Newest ``created_at`` among the occurrences.
    """

    key: str
    label: str
    occurrences: tuple[SiteIndexOccurrence, ...]
    manifest_ids: tuple[str, ...]
    created_at: int

    @property
    def relays(self) -> list[str]:
        return [o.relay for o in self.occurrences]

    @property
    def site_index(self) -> SiteIndexEvent:
        """Representative site-index: newest, then smallest id."""
        return min((o.event for o in self.occurrences), key=_newest_first)


def build_version_table(relays: Mapping[str, RelayContents]) -> dict[str, VersionInfo]:
    """Group site-indexes from every relay by addressable key.

    Versions are ordered by ``created_at`` then key, oldest first.
    """
    occurrences: dict[str, list[SiteIndexOccurrence]] = {}
    for url, contents in relays.items():
        for key in contents.site_indexes:
            event = contents.site_index(key)
            if event is not None:
                occurrences.setdefault(key, []).append(SiteIndexOccurrence(url, event))

    versions: list[VersionInfo] = []
    for key, found in occurrences.items():
        manifest_ids: dict[str, None] = {}
        for occurrence in found:
            manifest_ids.update(dict.fromkeys(referenced_manifests_of(occurrence.event)))
        representative = min((o.event for o in found), key=_newest_first)
        versions.append(
            VersionInfo(
                key=key,
                label=version_of(representative),
                occurrences=tuple(found),
                manifest_ids=tuple(manifest_ids),
                created_at=max(o.event.created_at for o in found),
            )
        )
    versions.sort(key=lambda v: (v.created_at, v.key))
    return {v.key: v for v in versions}


# ---------------------------------------------------------------------------
# Completeness
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class VersionCompleteness:
    """Presence of one version's closure on one relay."""

    version_key: str
    relay: str
    has_site_index: bool
    present_manifests: tuple[str, ...]
    missing_manifests: tuple[str, ...]
    present_assets: tuple[str, ...]
    missing_assets: tuple[str, ...]

    @property
    def is_complete(self) -> bool:
        return self.has_site_index and not self.missing_manifests and not self.missing_assets

    @property
    def status(self) -> Completeness:
        if self.is_complete:
            return Completeness.COMPLETE
        if self.has_site_index or self.present_manifests or self.present_assets:
            return Completeness.PARTIAL
        return Completeness.MISSING


def check_completeness(version: VersionInfo, contents: RelayContents) -> VersionCompleteness:
    """Check whether *contents* hold the full closure of *version*."""
    present_manifests = tuple(m for m in version.manifest_ids if m in contents.manifests)
    missing_manifests = tuple(m for m in version.manifest_ids if m not in contents.manifests)

    asset_ids: dict[str, None] = {}
    for manifest_id in present_manifests:
        asset_ids.update(dict.fromkeys(referenced_assets_of(contents.manifests[manifest_id])))

    return VersionCompleteness(
        version_key=version.key,
        relay=contents.relay,
        has_site_index=version.key in contents.site_indexes,
        present_manifests=present_manifests,
        missing_manifests=missing_manifests,
        present_assets=tuple(a for a in asset_ids if a in contents.assets),
        missing_assets=tuple(a for a in asset_ids if a not in contents.assets),
    )


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GraphAnalysis:
    """Everything the planner needs, derived from one snapshot.

    Attributes:
        relays: Relay contents in configured order.
        entrypoints: Current entrypoint analysis.
        versions: Version table ordered oldest first.
        completeness: ``version key -> relay -> completeness``.
    """

    relays: Mapping[str, RelayContents]
    entrypoints: EntrypointAnalysis
    versions: Mapping[str, VersionInfo]
    completeness: Mapping[str, Mapping[str, VersionCompleteness]]

    @property
    def relay_urls(self) -> list[str]:
        return list(self.relays)

    def completeness_of(self, version_key: str, relay: str) -> VersionCompleteness:
        return self.completeness[version_key][relay]

    def complete_relays(self, version_key: str) -> list[str]:
        """Relays holding the full closure of the version, in configured order."""
        records = self.completeness.get(version_key, {})
        return [url for url in self.relays if url in records and records[url].is_complete]

    @property
    def current_version(self) -> VersionInfo | None:
        target = self.entrypoints.target_key
        return self.versions.get(target) if target is not None else None


def analyze_graph(relay_events: Mapping[str, Sequence[GraphEvent]]) -> GraphAnalysis:
    """Build the full [GraphAnalysis][nwpublisher.services.sync.analyzer.GraphAnalysis]."""
    relays = {url: RelayContents.from_events(url, events) for url, events in relay_events.items()}
    versions = build_version_table(relays)
    completeness = {
        key: MappingProxyType(
            {url: check_completeness(version, contents) for url, contents in relays.items()}
        )
        for key, version in versions.items()
    }
    return GraphAnalysis(
        relays=MappingProxyType(relays),
        entrypoints=analyze_entrypoints(relays),
        versions=MappingProxyType(versions),
        completeness=MappingProxyType(completeness),
    )
