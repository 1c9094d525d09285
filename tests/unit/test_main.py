"""
Unit tests for the nwpublisher.__main__ CLI module.

Tests:
- parse_args() - subcommands, flags, the delete-orphans alias
- build_config_dict() - shared sections, command sections, flag overrides
- exit_code() / render() - report presentation
- main() - end to end with an in-memory relay store
"""

import argparse
import json
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from nwpublisher.__main__ import (
    COMMAND_REGISTRY,
    DEFAULT_CONFIG,
    build_config_dict,
    build_store,
    exit_code,
    main,
    parse_args,
    render,
)
from nwpublisher.models.constants import CommandName, RelayState, RunOutcome
from nwpublisher.services.cleanup import CleanupMode
from nwpublisher.services.common import NostrRelayStore, TypedPhraseGate
from nwpublisher.services.common.executor import ExecutionSummary, RelayExecution
from nwpublisher.services.common.plan import ReconciliationPlan
from nwpublisher.services.status import RelayStatus, StatusCommand, StatusReport
from nwpublisher.services.sync import SyncReport
from nwpublisher.services.sync.analyzer import analyze_graph
from tests.conftest import RELAY_A, RELAY_B, SIGNER_PUBKEY, EventFactory, FakeRelayStore


def _sync_report(outcome: RunOutcome, execution: ExecutionSummary | None = None) -> SyncReport:
    plan = ReconciliationPlan()
    return SyncReport(
        outcome=outcome,
        analysis=analyze_graph({}),
        sources={},
        plan=plan,
        summary=plan.summary(),
        execution=execution,
    )


def _write_config(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "nwpublisher.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


# ============================================================================
# parse_args() Tests
# ============================================================================


class TestParseArgs:
    """Argument parsing."""

    def test_sync_flags(self) -> None:
        args = parse_args(["sync", "--dry-run", "--source-policy", "configured_order"])
        assert args.command == "sync"
        assert args.dry_run is True
        assert args.source_policy == "configured_order"
        assert args.config == DEFAULT_CONFIG
        assert args.log_level == "WARNING"

    def test_status_pubkey_and_json(self) -> None:
        args = parse_args(["status", "--pubkey", "npub1xyz", "--json"])
        assert args.pubkey == "npub1xyz"
        assert args.json is True

    def test_versions_compare(self) -> None:
        args = parse_args(["versions", "compare", "1.0.0", "2.0.0", "--config", "x.yaml"])
        assert (args.action, args.version, args.other) == ("compare", "1.0.0", "2.0.0")
        assert args.config == Path("x.yaml")

    def test_versions_requires_action(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["versions"])

    def test_cleanup_version(self) -> None:
        args = parse_args(["cleanup", "--version", "1.0.0", "--relay", RELAY_A])
        assert args.version == "1.0.0"
        assert args.mode is None
        assert args.relay == RELAY_A

    def test_cleanup_all(self) -> None:
        assert parse_args(["cleanup", "--all"]).mode == CleanupMode.ALL

    def test_cleanup_modes_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["cleanup", "--all", "--version", "1.0.0"])

    def test_delete_orphans_alias(self) -> None:
        args = parse_args(["delete-orphans", "--dry-run"])
        assert args.command == "cleanup"
        assert args.mode == CleanupMode.ORPHANS
        assert args.version is None
        assert args.dry_run is True

    @pytest.mark.parametrize("command", ["sync", "cleanup", "delete-orphans"])
    def test_no_confirmation_bypass_flag(self, command: str) -> None:
        with pytest.raises(SystemExit):
            parse_args([command, "--yes"])

    def test_unknown_command(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["publish"])


# ============================================================================
# build_config_dict() Tests
# ============================================================================


class TestBuildConfigDict:
    """Merging file sections and flags."""

    FILE = {
        "relays": {"urls": [RELAY_A, RELAY_B]},
        "keys": {"keys_env": "MY_SK"},
        "execution": {"max_concurrency": 2},
        "sync": {"execution": {"max_concurrency": 3}, "source_policy": "configured_order"},
        "cleanup": {"mode": "all"},
    }

    def test_command_section_overrides_shared(self) -> None:
        data = build_config_dict(parse_args(["sync"]), self.FILE)
        assert data["execution"] == {"max_concurrency": 3}
        assert data["source_policy"] == "configured_order"
        assert "cleanup" not in data
        assert "author" not in data

    def test_flag_overrides_section(self) -> None:
        data = build_config_dict(parse_args(["sync", "--source-policy", "lowest_latency"]), self.FILE)
        assert data["source_policy"] == "lowest_latency"

    def test_read_only_commands_use_signing_key_env(self) -> None:
        data = build_config_dict(parse_args(["status"]), self.FILE)
        assert data["author"] == {"keys_env": "MY_SK"}

    def test_pubkey_flag(self) -> None:
        data = build_config_dict(parse_args(["status", "--pubkey", SIGNER_PUBKEY]), self.FILE)
        assert data["author"] == {"keys_env": "MY_SK", "pubkey": SIGNER_PUBKEY}

    def test_versions_arguments(self) -> None:
        data = build_config_dict(parse_args(["versions", "show", "1.0.0"]), {})
        assert (data["action"], data["version"], data["other"]) == ("show", "1.0.0", None)

    def test_cleanup_file_mode(self) -> None:
        data = build_config_dict(parse_args(["cleanup"]), self.FILE)
        assert data["mode"] == "all"

    def test_cleanup_version_flag(self) -> None:
        data = build_config_dict(parse_args(["cleanup", "--version", "1.0.0"]), self.FILE)
        assert (data["mode"], data["version"]) == ("version", "1.0.0")

    def test_delete_orphans_overrides_file_mode(self) -> None:
        data = build_config_dict(parse_args(["delete-orphans", "--relay", RELAY_B]), self.FILE)
        assert data["mode"] == "orphans"
        assert data["relay"] == RELAY_B


def test_registry_covers_commands() -> None:
    assert set(COMMAND_REGISTRY) == {c.value for c in CommandName}
    assert [name for name, entry in COMMAND_REGISTRY.items() if entry.writes] == [
        "sync",
        "cleanup",
    ]


def test_build_store_read_only(private_key_env: str) -> None:
    config = StatusCommand.parse_config({"relays": {"urls": [RELAY_A], "allow_insecure": True}})
    store = build_store(config)
    assert isinstance(store, NostrRelayStore)
    assert store._keys is None
    assert store._allow_insecure is True


# ============================================================================
# Presentation Tests
# ============================================================================


class TestExitCode:
    """0 only when the command did what was asked."""

    @pytest.mark.parametrize(
        ("outcome", "expected"),
        [
            (RunOutcome.NOTHING_TO_DO, 0),
            (RunOutcome.DRY_RUN, 0),
            (RunOutcome.DECLINED, 1),
            (RunOutcome.ABORTED, 1),
        ],
    )
    def test_outcomes(self, outcome: RunOutcome, expected: int) -> None:
        assert exit_code(_sync_report(outcome)) == expected

    def test_execution_failures(self) -> None:
        failed = RelayExecution(relay=RELAY_A, state=RelayState.CONNECTION_FAILED, failed=2)
        execution = ExecutionSummary.merge([failed], consistent=0)
        assert exit_code(_sync_report(RunOutcome.EXECUTED, execution)) == 1

    def test_execution_success(self) -> None:
        done = RelayExecution(relay=RELAY_A, state=RelayState.DONE, published=3)
        execution = ExecutionSummary.merge([done], consistent=1)
        assert exit_code(_sync_report(RunOutcome.EXECUTED, execution)) == 0

    def test_status_without_reachable_relay(self) -> None:
        report = StatusReport(
            pubkey=SIGNER_PUBKEY, relays=(RelayStatus(relay=RELAY_A, connected=False),)
        )
        assert exit_code(report) == 1


class TestRender:
    """Text and JSON output."""

    def test_json(self) -> None:
        output = render(_sync_report(RunOutcome.DRY_RUN), as_json=True)
        assert json.loads(output)["outcome"] == "dry_run"

    def test_sync_text(self) -> None:
        output = render(_sync_report(RunOutcome.NOTHING_TO_DO), as_json=False)
        assert "current version: (none)" in output
        assert "outcome: nothing_to_do" in output

    def test_status_text(self) -> None:
        report = StatusReport(
            pubkey=SIGNER_PUBKEY,
            relays=(
                RelayStatus(relay=RELAY_A, connected=False, error="refused"),
                RelayStatus(relay=RELAY_B, connected=True, latency_ms=12.5, counts={"asset": 0}),
            ),
        )
        output = render(report, as_json=False)
        assert f"{RELAY_A}: unreachable (refused)" in output
        assert "reachable: 1/2" in output
        assert "warning: no entrypoint" in output


# ============================================================================
# main() Tests
# ============================================================================


class TestMain:
    """End to end through the CLI with the relay store patched."""

    async def test_status(
        self,
        tmp_path: Path,
        private_key_env: str,
        signer_factory: EventFactory,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        config = _write_config(tmp_path, {"relays": {"urls": [RELAY_A]}})
        store = FakeRelayStore({RELAY_A: signer_factory.version("site", "1.0.0")})

        with patch("nwpublisher.__main__.build_store", return_value=store):
            code = await main(["status", "--config", str(config), "--json"])

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["pubkey"] == SIGNER_PUBKEY
        assert data["relays"][0]["counts"]["asset"] == 1

    async def test_sync_runs_only_after_typed_confirmation(
        self, tmp_path: Path, private_key_env: str, signer_factory: EventFactory
    ) -> None:
        events = signer_factory.version("site", "1.0.0")
        config = _write_config(tmp_path, {"relays": {"urls": [RELAY_A, RELAY_B]}})
        store = FakeRelayStore({RELAY_A: events, RELAY_B: []})
        prompts: list[str] = []

        def _operator(prompt: str) -> str:
            prompts.append(prompt)
            return "SYNC"

        with (
            patch("nwpublisher.__main__.build_store", return_value=store),
            patch(
                "nwpublisher.__main__.TypedPhraseGate",
                return_value=TypedPhraseGate(_operator),
            ),
        ):
            code = await main(["sync", "--config", str(config)])

        assert code == 0
        assert len(prompts) == 1
        assert RELAY_B in prompts[0]
        assert store.ids_on(RELAY_B) == {e.id for e in events}

    async def test_dry_run_never_prompts(
        self, tmp_path: Path, private_key_env: str, signer_factory: EventFactory
    ) -> None:
        config = _write_config(tmp_path, {"relays": {"urls": [RELAY_A, RELAY_B]}})
        store = FakeRelayStore({RELAY_A: signer_factory.version("site", "1.0.0"), RELAY_B: []})

        prompts: list[str] = []

        with (
            patch("nwpublisher.__main__.build_store", return_value=store),
            patch(
                "nwpublisher.__main__.TypedPhraseGate",
                return_value=TypedPhraseGate(prompts.append),
            ),
        ):
            code = await main(["sync", "--dry-run", "--config", str(config)])

        assert code == 0
        assert prompts == []
        assert store.calls == []

    async def test_declined_prompt(
        self, tmp_path: Path, private_key_env: str, signer_factory: EventFactory
    ) -> None:
        config = _write_config(tmp_path, {"relays": {"urls": [RELAY_A, RELAY_B]}})
        store = FakeRelayStore({RELAY_A: signer_factory.version("site", "1.0.0"), RELAY_B: []})

        with (
            patch("nwpublisher.__main__.build_store", return_value=store),
            patch(
                "nwpublisher.__main__.TypedPhraseGate",
                return_value=TypedPhraseGate(lambda _: "no"),
            ),
        ):
            code = await main(["sync", "--config", str(config)])

        assert code == 1
        assert store.calls == []

    async def test_invalid_config(
        self, tmp_path: Path, private_key_env: str, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config = _write_config(tmp_path, {"relays": {"urls": []}})
        code = await main(["status", "--config", str(config)])
        assert code == 1
        assert "error:" in capsys.readouterr().err

    async def test_command_error(
        self, tmp_path: Path, private_key_env: str, signer_factory: EventFactory
    ) -> None:
        config = _write_config(tmp_path, {"relays": {"urls": [RELAY_A]}})
        store = FakeRelayStore({RELAY_A: signer_factory.version("site", "1.0.0")})

        with patch("nwpublisher.__main__.build_store", return_value=store):
            code = await main(["cleanup", "--version", "9.9.9", "--config", str(config)])

        assert code == 1

    async def test_missing_relay_list_is_fatal(
        self,
        tmp_path: Path,
        private_key_env: str,
        no_relays_env: None,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        with patch("nwpublisher.__main__.build_store") as build:
            code = await main(["versions", "list", "--config", str(tmp_path / "absent.yaml")])
        assert code == 1
        build.assert_not_called()
        assert "No relays configured" in capsys.readouterr().err

    async def test_keyboard_interrupt(self, tmp_path: Path, private_key_env: str) -> None:
        with patch("nwpublisher.__main__.run_command", side_effect=KeyboardInterrupt):
            code = await main(["status", "--config", str(tmp_path / "absent.yaml")])
        assert code == 130


def test_parse_args_returns_namespace() -> None:
    assert isinstance(parse_args(["status"]), argparse.Namespace)
