"""Orphan detection on a single relay.

Reachability is marked top-down through the layers present on the relay:

1. Entrypoints mark the site-indexes they address.
2. Marked site-indexes mark the manifests in their routes. When the relay
   has no entrypoint at all, every site-index marks its manifests.
3. Marked manifests mark the assets they reference. When the relay has no
   site-index at all, every manifest marks its assets.

Anything left unmarked is an orphan. Site-indexes only count as orphaned
when the relay holds an entrypoint; entrypoints are never orphans.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from nwpublisher.models.constants import EventKind
from nwpublisher.models.graph import (
    AssetEvent,
    EntrypointEvent,
    GraphEvent,
    ManifestEvent,
    SiteIndexEvent,
    index_by_id,
)


@dataclass(frozen=True, slots=True)
class OrphanReport:
    """Unreachable events of one relay, per layer."""

    relay: str
    site_indexes: tuple[SiteIndexEvent, ...] = ()
    manifests: tuple[ManifestEvent, ...] = ()
    assets: tuple[AssetEvent, ...] = ()

    @property
    def events(self) -> list[GraphEvent]:
        return [*self.site_indexes, *self.manifests, *self.assets]

    @property
    def total(self) -> int:
        return len(self.site_indexes) + len(self.manifests) + len(self.assets)

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "relay": self.relay,
            "site_indexes": [e.id for e in self.site_indexes],
            "manifests": [e.id for e in self.manifests],
            "assets": [e.id for e in self.assets],
            "total": self.total,
        }


def _address_of(site_index: SiteIndexEvent) -> str:
    return f"{int(EventKind.SITE_INDEX)}:{site_index.pubkey}:{site_index.key}"


def detect_orphans(events: Sequence[GraphEvent], relay: str = "") -> OrphanReport:
    """Find the events on one relay that nothing reachable references."""
    unique = list(index_by_id(events).values())
    entrypoints = [e for e in unique if isinstance(e, EntrypointEvent)]
    site_indexes = [e for e in unique if isinstance(e, SiteIndexEvent)]
    manifests = [e for e in unique if isinstance(e, ManifestEvent)]
    assets = [e for e in unique if isinstance(e, AssetEvent)]

    addresses = {e.address for e in entrypoints if e.address}
    if entrypoints:
        live_indexes = [s for s in site_indexes if s.key and _address_of(s) in addresses]
    else:
        live_indexes = site_indexes
    live_index_ids = {s.id for s in live_indexes}

    live_manifest_ids = {m for s in live_indexes for m in s.routes.values()}
    if not site_indexes:
        live_manifest_ids = {m.id for m in manifests}

    live_asset_ids = {
        a for m in manifests if m.id in live_manifest_ids for a in m.asset_ids
    }

    return OrphanReport(
        relay=relay,
        site_indexes=tuple(s for s in site_indexes if s.id not in live_index_ids),
        manifests=tuple(m for m in manifests if m.id not in live_manifest_ids),
        assets=tuple(a for a in assets if a.id not in live_asset_ids),
    )


def detect_orphans_per_relay(
    relay_events: Mapping[str, Sequence[GraphEvent]],
) -> dict[str, OrphanReport]:
    """Run [detect_orphans()][nwpublisher.services.cleanup.orphans.detect_orphans] on each relay."""
    return {url: detect_orphans(events, url) for url, events in relay_events.items()}
