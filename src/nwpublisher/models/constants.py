"""Shared constants for the models layer.

Defines the protocol constants of the site content graph (event kinds and
tag names), the graph layering used to order publications, and other
enumerations shared across layers. Placing them here avoids circular
dependencies between the models, core, and services layers.

Note:
    Kind numbers and tag names are the on-the-wire protocol. Other
    clients in the ecosystem resolve sites by these exact values, so they
    are not internal choices.

See Also:
    [nwpublisher.models.graph][]: Typed event variants keyed by
        [EventKind][nwpublisher.models.constants.EventKind].
    [nwpublisher.services.common.executor][]: Orders publications by
        [GraphLayer][nwpublisher.models.constants.GraphLayer].
"""

from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import Final


class EventKind(IntEnum):
    """Nostr event kinds that make up a published site.

    Attributes:
        DELETION: Kind 5, NIP-09 deletion request (tombstone).
        ASSET: Kind 1125, leaf file content, identified by its ``x`` hash tag.
        MANIFEST: Kind 1126, per-route bundle referencing assets via ``e`` tags.
        ENTRYPOINT: Kind 11126, replaceable "current site" pointer
            carrying an ``a`` tag to one site-index address.
        SITE_INDEX: Kind 31126, addressable route table, keyed by its
            ``d`` tag (a truncated hash of its own content).
    """

    DELETION = 5
    ASSET = 1125
    MANIFEST = 1126
    ENTRYPOINT = 11_126
    SITE_INDEX = 31_126


class GraphLayer(IntEnum):
    """Position of an event kind in the content graph, bottom to top.

    Publications on a relay are always sent in ascending layer order so a
    relay never holds a reference to an id it has not yet received.
    """

    ASSET = 1
    MANIFEST = 2
    SITE_INDEX = 3
    ENTRYPOINT = 4


class CommandName(StrEnum):
    """Canonical command identifiers used in logging and the CLI."""

    SYNC = "sync"
    CLEANUP = "cleanup"
    STATUS = "status"
    VERSIONS = "versions"


class Completeness(StrEnum):
    """Presence of one version on one relay.

    Attributes:
        COMPLETE: Site-index, every manifest it lists, and every asset
            those manifests list are all present.
        PARTIAL: Some of the version's events are present, but not all.
        MISSING: None of the version's events are present.
    """

    COMPLETE = "complete"
    PARTIAL = "partial"
    MISSING = "missing"


class RunOutcome(StrEnum):
    """How a planning command ended.

    Attributes:
        NOTHING_TO_DO: The plan was empty; no relay was contacted.
        DRY_RUN: The plan was only displayed.
        DECLINED: The operator did not confirm.
        EXECUTED: The plan ran on every relay.
        ABORTED: Shutdown was requested before every relay ran.
    """

    NOTHING_TO_DO = "nothing_to_do"
    DRY_RUN = "dry_run"
    DECLINED = "declined"
    EXECUTED = "executed"
    ABORTED = "aborted"


class RelayState(StrEnum):
    """States of the per-relay plan execution state machine."""

    IDLE = "idle"
    CONNECTING = "connecting"
    DELETING = "deleting"
    PUBLISHING = "publishing"
    DONE = "done"
    CONNECTION_FAILED = "connection_failed"


SITE_KINDS: Final[tuple[EventKind, ...]] = (
    EventKind.ASSET,
    EventKind.MANIFEST,
    EventKind.SITE_INDEX,
    EventKind.ENTRYPOINT,
)

LAYER_BY_KIND: Final[dict[int, GraphLayer]] = {
    EventKind.ASSET: GraphLayer.ASSET,
    EventKind.MANIFEST: GraphLayer.MANIFEST,
    EventKind.SITE_INDEX: GraphLayer.SITE_INDEX,
    EventKind.ENTRYPOINT: GraphLayer.ENTRYPOINT,
}

# Tag names
TAG_EVENT: Final = "e"
TAG_ADDRESS: Final = "a"
TAG_IDENTIFIER: Final = "d"
TAG_HASH: Final = "x"
TAG_MIME: Final = "m"
TAG_NAME: Final = "name"
TAG_ROUTE: Final = "route"
TAG_KIND: Final = "k"

MIN_RELAY_COUNT: Final = 1
MAX_RELAY_COUNT: Final = 10

# Ids per tombstone event
DELETION_BATCH_SIZE: Final = 10

ENTRYPOINT_REPLACED_REASON: Final = "Replacing old entrypoint with updated version"
ORPHAN_DELETION_REASON: Final = "Removing orphaned site content"
VERSION_DELETION_REASON: Final = "Removing site version"
FULL_CLEANUP_REASON: Final = "Removing all site content"

EVENT_KIND_MAX: Final = 65_535
