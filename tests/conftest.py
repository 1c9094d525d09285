"""
Pytest configuration and shared fixtures for nw-publisher tests.

Provides:
- Deterministic event factory building valid content-graph events
- In-memory relay store (FakeRelayStore) that applies publishes and deletions
- Private key environment fixture
- Custom pytest markers for test categorization
"""

import hashlib
import json
import logging
from collections.abc import Iterable
from typing import Any

import pytest
from nostr_sdk import Keys

from nwpublisher.core.exceptions import ConnectivityError
from nwpublisher.core.store import DeletionRequest, PublishResult
from nwpublisher.models.constants import EventKind
from nwpublisher.models.graph import (
    AssetEvent,
    EntrypointEvent,
    GraphEvent,
    ManifestEvent,
    SiteIndexEvent,
    parse_event,
)
from nwpublisher.models.relay import Relay
from nwpublisher.services.common.confirm import TypedPhraseGate
from nwpublisher.utils.keys import ENV_PRIVATE_KEY


# ============================================================================
# Test Constants
# ============================================================================

# Valid secp256k1 test key (DO NOT USE IN PRODUCTION)
VALID_HEX_KEY = (
    "67dea2ed018072d675f5415ecfaed7d2597555e202d85b3d65ea4e58d2d92ffa"  # pragma: allowlist secret
)

PUBKEY = "ab" * 32
OTHER_PUBKEY = "cd" * 32
SIG = "ef" * 64

# Public key of VALID_HEX_KEY; commands configured from the environment act as it
SIGNER_PUBKEY = Keys.parse(VALID_HEX_KEY).public_key().to_hex()

RELAY_A = "wss://relay-a.example.com"
RELAY_B = "wss://relay-b.example.com"
RELAY_C = "wss://relay-c.example.com"


def hex_id(seed: str) -> str:
    """Deterministic 64-char hex id derived from *seed*."""
    return hashlib.sha256(seed.encode()).hexdigest()


def typed_gate(answer: str) -> TypedPhraseGate:
    """Confirmation gate whose operator always types *answer*."""
    return TypedPhraseGate(lambda _prompt: answer)


# ============================================================================
# Event Factory
# ============================================================================


class EventFactory:
    """Builds valid graph events whose ids are derived from their fields.

    Two calls with the same arguments return events with the same id, like
    two relays holding the same signed event.
    """

    def __init__(self, pubkey: str = PUBKEY) -> None:
        self.pubkey = pubkey

    def raw(
        self, kind: int, tags: list[list[str]], content: str = "", created_at: int = 1_700_000_000
    ) -> dict[str, Any]:
        seed = json.dumps([self.pubkey, created_at, kind, tags, content])
        return {
            "id": hex_id(seed),
            "pubkey": self.pubkey,
            "created_at": created_at,
            "kind": kind,
            "tags": tags,
            "content": content,
            "sig": SIG,
        }

    def event(self, kind: int, tags: list[list[str]], **kwargs: Any) -> GraphEvent:
        return parse_event(self.raw(kind, tags, **kwargs))

    def asset(self, name: str, created_at: int = 1_700_000_000) -> AssetEvent:
        event = self.event(
            EventKind.ASSET,
            [["x", hex_id(f"content:{name}")], ["m", "text/html"], ["name", name]],
            content=f"<p>{name}</p>",
            created_at=created_at,
        )
        assert isinstance(event, AssetEvent)
        return event

    def manifest(
        self, route: str, assets: Iterable[GraphEvent], created_at: int = 1_700_000_000
    ) -> ManifestEvent:
        tags = [["route", route], *(["e", a.id] for a in assets)]
        event = self.event(EventKind.MANIFEST, tags, created_at=created_at)
        assert isinstance(event, ManifestEvent)
        return event

    def site_index(
        self,
        key: str,
        version: str | None,
        manifests: Iterable[ManifestEvent],
        created_at: int = 1_700_000_000,
    ) -> SiteIndexEvent:
        manifests = list(manifests)
        body: dict[str, Any] = {
            "routes": {m.route or f"/{i}": m.id for i, m in enumerate(manifests)},
            "defaultRoute": "/",
            "notFoundRoute": "/404",
        }
        if version is not None:
            body["version"] = version
        event = self.event(
            EventKind.SITE_INDEX, [["d", key]], content=json.dumps(body), created_at=created_at
        )
        assert isinstance(event, SiteIndexEvent)
        return event

    def entrypoint(self, key: str, created_at: int = 1_700_000_000) -> EntrypointEvent:
        address = f"{int(EventKind.SITE_INDEX)}:{self.pubkey}:{key}"
        event = self.event(EventKind.ENTRYPOINT, [["a", address]], created_at=created_at)
        assert isinstance(event, EntrypointEvent)
        return event

    def version(
        self,
        key: str,
        label: str | None,
        routes: Iterable[str] = ("/",),
        assets_per_route: int = 1,
        created_at: int = 1_700_000_000,
    ) -> list[GraphEvent]:
        """Full closure of one version: assets, manifests, then the site-index."""
        events: list[GraphEvent] = []
        manifests: list[ManifestEvent] = []
        for route in routes:
            assets = [
                self.asset(f"{key}{route}{i}", created_at) for i in range(assets_per_route)
            ]
            manifest = self.manifest(route, assets, created_at)
            events.extend(assets)
            manifests.append(manifest)
        events.extend(manifests)
        events.append(self.site_index(key, label, manifests, created_at))
        return events


@pytest.fixture
def factory() -> EventFactory:
    """Event factory for the default test identity."""
    return EventFactory()


@pytest.fixture
def signer_factory() -> EventFactory:
    """Event factory for the identity behind ``VALID_HEX_KEY``."""
    return EventFactory(SIGNER_PUBKEY)


# ============================================================================
# In-memory Relay Store
# ============================================================================


class FakeConnection:
    """Session on one FakeRelayStore relay."""

    def __init__(self, store: "FakeRelayStore", relay: Relay) -> None:
        self._store = store
        self._relay = relay
        self.closed = False

    @property
    def relay(self) -> Relay:
        return self._relay

    async def publish(self, event: GraphEvent) -> PublishResult:
        url = self._relay.url
        self._store.calls.append((url, "publish", (event.id,)))
        if event.id in self._store.reject:
            return PublishResult(event_id=event.id, accepted=False, message="blocked: test")
        held = self._store.relays.setdefault(url, [])
        if all(e.id != event.id for e in held):
            held.append(event)
        return PublishResult(event_id=event.id, accepted=True)

    async def delete(self, request: DeletionRequest) -> PublishResult:
        url = self._relay.url
        self._store.calls.append((url, "delete", request.target_ids))
        self._store.deletions.append((url, request))
        targets = set(request.target_ids)
        self._store.relays[url] = [e for e in self._store.relays.get(url, []) if e.id not in targets]
        return PublishResult(event_id=hex_id(repr(request)), accepted=True)

    async def close(self) -> None:
        self.closed = True


class FakeRelayStore:
    """In-memory [RelayEventStore] holding events per relay URL.

    Attributes:
        relays: Relay URL to the events it holds.
        unreachable: URLs whose queries return nothing and whose connects fail.
        reject: Event ids every relay refuses to accept.
        calls: ``(url, action, ids)`` in the order they happened.
        deletions: ``(url, request)`` for every tombstone received.
    """

    def __init__(self, relays: dict[str, list[GraphEvent]] | None = None) -> None:
        self.relays: dict[str, list[GraphEvent]] = {
            Relay(url).url: list(events) for url, events in (relays or {}).items()
        }
        self.unreachable: set[str] = set()
        self.reject: set[str] = set()
        self.calls: list[tuple[str, str, tuple[str, ...]]] = []
        self.deletions: list[tuple[str, DeletionRequest]] = []
        self.connections: list[FakeConnection] = []

    async def query(self, relay: Relay, kinds: Iterable[int], author: str) -> list[GraphEvent]:
        if relay.url in self.unreachable:
            return []
        wanted = set(kinds)
        return [
            e for e in self.relays.get(relay.url, []) if e.kind in wanted and e.pubkey == author
        ]

    async def connect(self, relay: Relay) -> FakeConnection:
        if relay.url in self.unreachable:
            raise ConnectivityError(f"cannot reach {relay.url}")
        connection = FakeConnection(self, relay)
        self.connections.append(connection)
        return connection

    def ids_on(self, url: str) -> set[str]:
        return {e.id for e in self.relays.get(url, [])}


@pytest.fixture
def fake_store() -> FakeRelayStore:
    """Empty in-memory relay store."""
    return FakeRelayStore()


# ============================================================================
# Environment
# ============================================================================


@pytest.fixture
def private_key_env(monkeypatch: pytest.MonkeyPatch) -> str:
    """Set the default private key environment variable to a valid test key."""
    monkeypatch.setenv(ENV_PRIVATE_KEY, VALID_HEX_KEY)
    return VALID_HEX_KEY


@pytest.fixture
def no_relays_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make sure the relay list environment variable does not leak into tests."""
    monkeypatch.delenv("RELAYS", raising=False)


# ============================================================================
# Logging / Markers
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: fast isolated tests")
