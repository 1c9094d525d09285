"""Pure frozen dataclasses with zero I/O for relays and site content-graph events.

The models layer is the foundation of the diamond DAG. It has **no
dependencies** on any other nwpublisher package. Every model uses
``@dataclass(frozen=True, slots=True)`` and validates in ``__post_init__``,
so invalid instances never escape the constructor.

Attributes:
    Relay: Validated relay URL with RFC 3986 parsing and normalization.
    GraphEvent: Validated NIP-01 envelope shared by all graph events.
    AssetEvent, ManifestEvent, SiteIndexEvent, EntrypointEvent, DeletionEvent:
        Typed variants of the content graph, one per event kind.
    EventKind: Protocol kind numbers of the content graph.
    GraphLayer: Bottom-up ordering of the graph kinds.

See Also:
    [nwpublisher.models.graph][]: Typed events and reference functions.
    [nwpublisher.models.relay][]: Relay URL validation.
    [nwpublisher.models.constants][]: Shared constants and enumerations.
"""

from .constants import (
    SITE_KINDS,
    CommandName,
    Completeness,
    EventKind,
    GraphLayer,
    RelayState,
    RunOutcome,
)
from .graph import (
    AssetEvent,
    DeletionEvent,
    EntrypointEvent,
    GraphEvent,
    ManifestEvent,
    SiteIndexEvent,
    group_by_kind,
    index_by_id,
    layer_of,
    parse_event,
    referenced_assets_of,
    referenced_manifests_of,
    sort_by_layer,
    target_site_index_key_of,
    version_of,
)
from .relay import Relay


__all__ = [
    "SITE_KINDS",
    "AssetEvent",
    "CommandName",
    "Completeness",
    "DeletionEvent",
    "EntrypointEvent",
    "EventKind",
    "GraphEvent",
    "GraphLayer",
    "ManifestEvent",
    "Relay",
    "RelayState",
    "RunOutcome",
    "SiteIndexEvent",
    "group_by_kind",
    "index_by_id",
    "layer_of",
    "parse_event",
    "referenced_assets_of",
    "referenced_manifests_of",
    "sort_by_layer",
    "target_site_index_key_of",
    "version_of",
]
