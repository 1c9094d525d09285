"""Typed content-graph events and the pure reference functions over them.

A published site is a four-layer graph of signed Nostr events:

```text
entrypoint (11126)  --a tag-->   site-index (31126)
site-index          --routes-->  manifest (1126)
manifest            --e tags-->  asset (1125)
```

Raw relay data is validated once, when it enters the system, and turned
into one of the frozen variants below. The split is deliberate:

* **Envelope** errors (malformed id, pubkey, signature, timestamp, kind,
  null bytes) reject the event with ``ValueError``/``TypeError``.
* **Payload** errors (unparseable JSON content, missing or malformed tags)
  never raise. The event is kept and simply contributes no references,
  because every relay is an untrusted peer.

Every variant keeps the exact signed fields, so an event read from one
relay can be re-sent to another with an identical id.

See Also:
    [EventKind][nwpublisher.models.constants.EventKind]: Protocol kind numbers.
    [nwpublisher.services.sync.analyzer][]: Main consumer of the reference
        functions defined here.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, ClassVar

from ._validation import (
    deep_freeze,
    is_hex,
    validate_hex,
    validate_instance,
    validate_str_no_null,
    validate_timestamp,
)
from .constants import (
    EVENT_KIND_MAX,
    LAYER_BY_KIND,
    TAG_ADDRESS,
    TAG_EVENT,
    TAG_HASH,
    TAG_IDENTIFIER,
    TAG_MIME,
    TAG_NAME,
    TAG_ROUTE,
    EventKind,
    GraphLayer,
)


_ID_LENGTH = 64
_SIG_LENGTH = 128
_EMPTY_ROUTES: Mapping[str, str] = MappingProxyType({})

Tags = tuple[tuple[str, ...], ...]


# ---------------------------------------------------------------------------
# Base envelope
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GraphEvent:
    """Immutable, validated envelope shared by every content-graph event.

    Attributes:
        id: 64-char hex event id (hash of the signable fields).
        pubkey: 64-char hex author public key.
        created_at: Unix timestamp in seconds.
        kind: Event kind.
        tags: Ordered tags, each a tuple of strings.
        content: Event content.
        sig: 128-char hex Schnorr signature.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If a field violates the envelope rules, or ``kind``
            does not match the variant's ``KIND``.
    """

    KIND: ClassVar[EventKind | None] = None

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: Tags
    content: str
    sig: str

    def __post_init__(self) -> None:
        validate_hex(self.id, _ID_LENGTH, "id")
        validate_hex(self.pubkey, _ID_LENGTH, "pubkey")
        validate_hex(self.sig, _SIG_LENGTH, "sig")
        validate_timestamp(self.created_at, "created_at")
        validate_timestamp(self.kind, "kind")
        if self.kind > EVENT_KIND_MAX:
            raise ValueError(f"kind must be <= {EVENT_KIND_MAX}, got {self.kind}")
        if self.KIND is not None and self.kind != self.KIND:
            raise ValueError(f"{type(self).__name__} requires kind {int(self.KIND)}, got {self.kind}")
        validate_str_no_null(self.content, "content")
        validate_instance(self.tags, tuple, "tags")
        for tag in self.tags:
            validate_instance(tag, tuple, "tag")
            for value in tag:
                validate_str_no_null(value, "tag value")
        self._derive()

    def _derive(self) -> None:
        """Populate cached payload fields. Must never raise on bad payloads."""

    @property
    def layer(self) -> GraphLayer | None:
        """Graph layer of this event, or ``None`` for non-graph kinds."""
        return LAYER_BY_KIND.get(self.kind)

    def tag_values(self, name: str) -> tuple[str, ...]:
        """Return the first value of every tag named *name*, in tag order."""
        return tuple(tag[1] for tag in self.tags if len(tag) >= 2 and tag[0] == name)  # noqa: PLR2004

    def first_tag(self, name: str) -> str | None:
        """Return the first value of the first tag named *name*, if any."""
        values = self.tag_values(name)
        return values[0] if values else None

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 JSON object for this event."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def to_json(self) -> str:
        """Serialize to the NIP-01 wire JSON accepted by ``nostr_sdk.Event.from_json``."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AssetEvent(GraphEvent):
    """Leaf file content, identified by its ``x`` content-hash tag."""

    KIND: ClassVar[EventKind | None] = EventKind.ASSET

    content_hash: str | None = field(default=None, init=False, compare=False)
    mime: str | None = field(default=None, init=False, compare=False)
    name: str | None = field(default=None, init=False, compare=False)

    def _derive(self) -> None:
        object.__setattr__(self, "content_hash", self.first_tag(TAG_HASH))
        object.__setattr__(self, "mime", self.first_tag(TAG_MIME))
        object.__setattr__(self, "name", self.first_tag(TAG_NAME))


@dataclass(frozen=True, slots=True)
class ManifestEvent(GraphEvent):
    """Per-route bundle referencing asset event ids through ``e`` tags.

    Attributes:
        asset_ids: Well-formed asset ids in tag order, without duplicates.
            Malformed ``e`` values are dropped.
        route: Route served by this manifest (``route`` tag), if present.
    """

    KIND: ClassVar[EventKind | None] = EventKind.MANIFEST

    asset_ids: tuple[str, ...] = field(default=(), init=False, compare=False)
    route: str | None = field(default=None, init=False, compare=False)

    def _derive(self) -> None:
        ids = (v for v in self.tag_values(TAG_EVENT) if is_hex(v, _ID_LENGTH))
        object.__setattr__(self, "asset_ids", tuple(dict.fromkeys(ids)))
        object.__setattr__(self, "route", self.first_tag(TAG_ROUTE))


@dataclass(frozen=True, slots=True)
class SiteIndexEvent(GraphEvent):
    """Addressable route table describing one version of the site.

    The JSON content has the shape
    ``{"version": ..., "routes": {route: manifest_id}, "defaultRoute": ...,
    "notFoundRoute": ...}``. Any part that fails to parse is left empty.

    Attributes:
        key: The ``d`` tag (addressable key), or ``None`` if absent.
        version: The ``version`` string from the content, if any.
        routes: Read-only ``{route: manifest_id}`` mapping. Entries whose
            manifest id is not a well-formed event id are dropped.
        default_route: ``defaultRoute`` from the content, if any.
        not_found_route: ``notFoundRoute`` from the content, if any.
    """

    KIND: ClassVar[EventKind | None] = EventKind.SITE_INDEX

    key: str | None = field(default=None, init=False, compare=False)
    version: str | None = field(default=None, init=False, compare=False)
    routes: Mapping[str, str] = field(
        default_factory=lambda: _EMPTY_ROUTES, init=False, compare=False
    )
    default_route: str | None = field(default=None, init=False, compare=False)
    not_found_route: str | None = field(default=None, init=False, compare=False)

    def _derive(self) -> None:
        object.__setattr__(self, "key", self.first_tag(TAG_IDENTIFIER) or None)

        try:
            body = json.loads(self.content)
        except ValueError:
            return
        if not isinstance(body, dict):
            return

        version = body.get("version")
        if isinstance(version, str) and version:
            object.__setattr__(self, "version", version)

        raw_routes = body.get("routes")
        if isinstance(raw_routes, dict):
            routes = {
                route: manifest_id
                for route, manifest_id in raw_routes.items()
                if isinstance(route, str) and is_hex(manifest_id, _ID_LENGTH)
            }
            object.__setattr__(self, "routes", deep_freeze(routes))

        for attr, name in (("default_route", "defaultRoute"), ("not_found_route", "notFoundRoute")):
            value = body.get(name)
            if isinstance(value, str):
                object.__setattr__(self, attr, value)

    @property
    def version_key(self) -> str:
        """Identity of the version this index describes.

        The addressable key is derived from the index's own content, so two
        deployments with the same human version string but different
        content never share a key. Indexes without a ``d`` tag fall back to
        their event id.
        """
        return self.key or self.id


@dataclass(frozen=True, slots=True)
class EntrypointEvent(GraphEvent):
    """Replaceable pointer to the current site-index address.

    Attributes:
        address: Raw ``a`` tag value (``kind:pubkey:key``), if present.
        target_key: ``key`` part of a well-formed address, else ``None``.
    """

    KIND: ClassVar[EventKind | None] = EventKind.ENTRYPOINT

    address: str | None = field(default=None, init=False, compare=False)
    target_key: str | None = field(default=None, init=False, compare=False)

    def _derive(self) -> None:
        address = self.first_tag(TAG_ADDRESS)
        object.__setattr__(self, "address", address)
        if address is None:
            return
        parts = address.split(":", 2)
        if len(parts) == 3 and parts[2]:  # noqa: PLR2004
            object.__setattr__(self, "target_key", parts[2])


@dataclass(frozen=True, slots=True)
class DeletionEvent(GraphEvent):
    """NIP-09 tombstone requesting deletion of the events it references."""

    KIND: ClassVar[EventKind | None] = EventKind.DELETION

    target_ids: tuple[str, ...] = field(default=(), init=False, compare=False)

    def _derive(self) -> None:
        object.__setattr__(self, "target_ids", self.tag_values(TAG_EVENT))

    @property
    def reason(self) -> str:
        return self.content


_VARIANTS: dict[int, type[GraphEvent]] = {
    EventKind.ASSET: AssetEvent,
    EventKind.MANIFEST: ManifestEvent,
    EventKind.SITE_INDEX: SiteIndexEvent,
    EventKind.ENTRYPOINT: EntrypointEvent,
    EventKind.DELETION: DeletionEvent,
}


def parse_event(data: Mapping[str, Any]) -> GraphEvent:
    """Validate a NIP-01 event object and return its typed variant.

    Args:
        data: Mapping with ``id``, ``pubkey``, ``created_at``, ``kind``,
            ``tags``, ``content`` and ``sig``.

    Returns:
        The matching [GraphEvent][nwpublisher.models.graph.GraphEvent]
        subclass instance.

    Raises:
        ValueError: If the kind is not part of the content graph, a field
            is missing, or the envelope is invalid.
        TypeError: If a field has the wrong type.
    """
    try:
        kind = data["kind"]
        variant = _VARIANTS[kind]
        raw_tags = data["tags"]
        fields = (data[k] for k in ("id", "pubkey", "created_at", "content", "sig"))
        event_id, pubkey, created_at, content, sig = fields
    except KeyError as e:
        raise ValueError(f"event is missing field or has unsupported kind: {e}") from None

    if not isinstance(raw_tags, list | tuple):
        raise TypeError(f"tags must be a list, got {type(raw_tags).__name__}")
    tags = tuple(tuple(tag) if isinstance(tag, list | tuple) else (tag,) for tag in raw_tags)

    return variant(
        id=event_id,
        pubkey=pubkey,
        created_at=created_at,
        kind=kind,
        tags=tags,
        content=content,
        sig=sig,
    )


# ---------------------------------------------------------------------------
# Reference functions
# ---------------------------------------------------------------------------


def referenced_assets_of(manifest: GraphEvent) -> list[str]:
    """Asset ids referenced by a manifest. Anything else references nothing."""
    if not isinstance(manifest, ManifestEvent):
        return []
    return list(manifest.asset_ids)


def referenced_manifests_of(site_index: GraphEvent) -> list[str]:
    """Manifest ids listed in a site-index's routes, in route order, deduplicated."""
    if not isinstance(site_index, SiteIndexEvent):
        return []
    return list(dict.fromkeys(site_index.routes.values()))


def target_site_index_key_of(entrypoint: GraphEvent) -> str | None:
    """Addressable key the entrypoint points at, or ``None`` if malformed."""
    if not isinstance(entrypoint, EntrypointEvent):
        return None
    return entrypoint.target_key


def version_of(site_index: SiteIndexEvent) -> str:
    """Human version label of a site-index.

    Indexes without a ``version`` field get a label derived from their own
    addressable key, so two unversioned indexes are never merged.
    """
    if site_index.version:
        return site_index.version
    return f"unversioned-{site_index.version_key[:8]}"


def layer_of(event: GraphEvent) -> int:
    """Publication rank of *event*; non-graph kinds sort last."""
    layer = event.layer
    return int(layer) if layer is not None else len(GraphLayer) + 1


def sort_by_layer(events: Iterable[GraphEvent]) -> list[GraphEvent]:
    """Stable sort, bottom layer first (asset, manifest, site-index, entrypoint)."""
    return sorted(events, key=layer_of)


def index_by_id(events: Iterable[GraphEvent]) -> dict[str, GraphEvent]:
    """Map event id to event. The first occurrence of a duplicate id wins."""
    indexed: dict[str, GraphEvent] = {}
    for event in events:
        indexed.setdefault(event.id, event)
    return indexed


def group_by_kind(events: Iterable[GraphEvent]) -> dict[int, list[GraphEvent]]:
    """Group events by kind, preserving input order within each group."""
    grouped: dict[int, list[GraphEvent]] = {}
    for event in events:
        grouped.setdefault(event.kind, []).append(event)
    return grouped
