"""
Unit tests for services.sync.service module.

Tests:
- SyncConfig defaults and validation
- SyncCommand.run() end to end against the in-memory relay store
- Dry run, declined and already-consistent runs
- SyncReport.to_dict()
"""

import pytest

from nwpublisher.core.exceptions import ConfigurationError
from nwpublisher.models.constants import RunOutcome
from nwpublisher.services.common.confirm import SYNC_PHRASE
from nwpublisher.services.sync import SourcePolicy, SyncCommand, SyncConfig
from tests.conftest import (
    RELAY_A,
    RELAY_B,
    SIGNER_PUBKEY,
    EventFactory,
    FakeRelayStore,
    typed_gate,
)


def _config(**overrides: object) -> SyncConfig:
    data = {"relays": {"urls": [RELAY_A, RELAY_B]}, **overrides}
    return SyncCommand.parse_config(data)


class TestSyncConfig:
    """SyncConfig validation."""

    def test_defaults(self, private_key_env: str, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RELAYS", f"{RELAY_A},{RELAY_B}")
        config = SyncConfig()
        assert config.keys.pubkey == SIGNER_PUBKEY
        assert config.source_policy == SourcePolicy.SMALLEST_URL
        assert config.execution.max_concurrency == 1
        assert config.relays.urls == [RELAY_A, RELAY_B]

    def test_source_policy(self, private_key_env: str) -> None:
        config = _config(source_policy="lowest_latency")
        assert config.source_policy == SourcePolicy.LOWEST_LATENCY

    def test_invalid_policy(self, private_key_env: str) -> None:
        with pytest.raises(ConfigurationError, match="sync"):
            _config(source_policy="fastest")

    def test_missing_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NOSTR_SK_HEX", raising=False)
        with pytest.raises(ConfigurationError, match="environment variable is required"):
            _config()


class TestSyncCommand:
    """SyncCommand.run() workflow."""

    async def test_executes_plan(self, private_key_env: str, signer_factory: EventFactory) -> None:
        events = [*signer_factory.version("site", "1.0.0"), signer_factory.entrypoint("site")]
        store = FakeRelayStore({RELAY_A: events, RELAY_B: []})

        async with SyncCommand(_config(), store, gate=typed_gate(SYNC_PHRASE)) as sync:
            report = await sync.run()

        assert report.outcome == RunOutcome.EXECUTED
        assert report.execution is not None
        assert report.execution.total_published == 4
        assert store.ids_on(RELAY_B) == {e.id for e in events}
        assert report.sources == {"site": RELAY_A}

    async def test_dry_run(self, private_key_env: str, signer_factory: EventFactory) -> None:
        store = FakeRelayStore({RELAY_A: signer_factory.version("site", "1.0.0"), RELAY_B: []})

        sync = SyncCommand(_config(), store, gate=typed_gate(SYNC_PHRASE), dry_run=True)
        report = await sync.run()

        assert report.outcome == RunOutcome.DRY_RUN
        assert report.summary.total_publications == 3
        assert store.calls == []

    async def test_declined(self, private_key_env: str, signer_factory: EventFactory) -> None:
        store = FakeRelayStore({RELAY_A: signer_factory.version("site", "1.0.0"), RELAY_B: []})

        report = await SyncCommand(_config(), store, gate=typed_gate("no")).run()

        assert report.outcome == RunOutcome.DECLINED
        assert report.execution is None
        assert store.calls == []

    async def test_nothing_to_do(self, private_key_env: str, signer_factory: EventFactory) -> None:
        events = signer_factory.version("site", "1.0.0")
        store = FakeRelayStore({RELAY_A: events, RELAY_B: events})

        report = await SyncCommand(_config(), store).run()

        assert report.outcome == RunOutcome.NOTHING_TO_DO

    async def test_ignores_other_authors(
        self, private_key_env: str, factory: EventFactory
    ) -> None:
        store = FakeRelayStore({RELAY_A: factory.version("site", "1.0.0"), RELAY_B: []})

        report = await SyncCommand(_config(), store, gate=typed_gate(SYNC_PHRASE)).run()

        assert report.outcome == RunOutcome.NOTHING_TO_DO
        assert report.analysis.versions == {}

    async def test_plan_only(self, private_key_env: str, signer_factory: EventFactory) -> None:
        store = FakeRelayStore({RELAY_A: signer_factory.version("site", "1.0.0"), RELAY_B: []})

        analysis, sources, plan = await SyncCommand(_config(), store).plan()

        assert list(analysis.versions) == ["site"]
        assert sources["site"] == RELAY_A
        assert plan.relay_plans[RELAY_B].publication_count == 3

    async def test_report_to_dict(self, private_key_env: str, signer_factory: EventFactory) -> None:
        store = FakeRelayStore({RELAY_A: signer_factory.version("site", "1.0.0"), RELAY_B: []})

        report = await SyncCommand(_config(), store, dry_run=True).run()
        data = report.to_dict()

        assert data["outcome"] == "dry_run"
        assert data["current_version"] is None
        assert data["versions"] == [
            {
                "key": "site",
                "version": "1.0.0",
                "source": RELAY_A,
                "relays": {RELAY_A: "complete", RELAY_B: "missing"},
            }
        ]
        assert data["plan"]["total_publications"] == 3
        assert data["execution"] is None
