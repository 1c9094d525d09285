"""CLI entry point for nw-publisher commands.

Every command reads the same YAML file. Top-level sections (``relays``,
``timeouts``, ``retry``, ``keys``, ``execution``) are shared; a section
named after the command overrides them for that command only. Command-line
flags override both.

Examples:
    ```bash
    nw-publisher status
    nw-publisher sync --dry-run
    nw-publisher versions compare 1.0.0 1.1.0 --json
    nw-publisher cleanup --version 1.0.0 --relay wss://nos.lol
    python -m nwpublisher delete-orphans --dry-run --log-level DEBUG
    ```
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any, NamedTuple

from nwpublisher.core.base_command import BaseCommand
from nwpublisher.core.exceptions import NwPublisherError
from nwpublisher.core.logger import Logger, StructuredFormatter
from nwpublisher.core.yaml import load_yaml
from nwpublisher.models.constants import CommandName, RunOutcome
from nwpublisher.services.cleanup import CleanupCommand, CleanupMode, CleanupReport
from nwpublisher.services.common import NostrRelayStore, TypedPhraseGate
from nwpublisher.services.status import StatusCommand, StatusReport
from nwpublisher.services.sync import SourcePolicy, SyncCommand, SyncReport
from nwpublisher.services.versions import VersionsAction, VersionsCommand, VersionsReport


DEFAULT_CONFIG = Path("config") / "nwpublisher.yaml"
DELETE_ORPHANS = "delete-orphans"
EXIT_INTERRUPTED = 130


class CommandEntry(NamedTuple):
    """Registry entry mapping a command to its class and whether it writes to relays."""

    cls: type[BaseCommand[Any, Any]]
    writes: bool


COMMAND_REGISTRY: dict[str, CommandEntry] = {
    CommandName.SYNC: CommandEntry(SyncCommand, writes=True),
    CommandName.CLEANUP: CommandEntry(CleanupCommand, writes=True),
    CommandName.STATUS: CommandEntry(StatusCommand, writes=False),
    CommandName.VERSIONS: CommandEntry(VersionsCommand, writes=False),
}

logger = Logger("cli")


# ---------------------------------------------------------------------------
# Arguments
# ---------------------------------------------------------------------------


def _common_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Config path (default: {DEFAULT_CONFIG})",
    )
    common.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Log level (default: WARNING)",
    )
    common.add_argument(
        "--json", action="store_true", help="Print the result as JSON instead of text"
    )
    return common


def _add_write_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--dry-run", action="store_true", help="Show the plan without changing any relay"
    )


def _add_pubkey_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--pubkey", help="Inspect this identity (hex or npub) instead of the configured key"
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the ``nw-publisher`` argument parser."""
    common = _common_parser()
    parser = argparse.ArgumentParser(
        prog="nw-publisher",
        description="Keep a Nostr-published static site consistent across relays",
    )
    commands = parser.add_subparsers(dest="command", required=True, metavar="command")

    sync = commands.add_parser(
        CommandName.SYNC, parents=[common], help="Reconcile the site across all relays"
    )
    _add_write_flags(sync)
    sync.add_argument(
        "--source-policy",
        choices=[p.value for p in SourcePolicy],
        help="How the source relay of each version is chosen",
    )

    status = commands.add_parser(
        CommandName.STATUS, parents=[common], help="Connectivity and event counts per relay"
    )
    _add_pubkey_flag(status)

    versions = commands.add_parser(CommandName.VERSIONS, help="Site version history")
    actions = versions.add_subparsers(dest="action", required=True, metavar="action")
    for action_parser in (
        actions.add_parser(VersionsAction.LIST, parents=[common], help="List all versions"),
        _with_args(
            actions.add_parser(VersionsAction.SHOW, parents=[common], help="Show one version"),
            "version",
        ),
        _with_args(
            actions.add_parser(
                VersionsAction.COMPARE, parents=[common], help="Compare two versions"
            ),
            "version",
            "other",
        ),
    ):
        _add_pubkey_flag(action_parser)

    cleanup = commands.add_parser(
        CommandName.CLEANUP, parents=[common], help="Delete orphans, a version, or everything"
    )
    _add_write_flags(cleanup)
    modes = cleanup.add_mutually_exclusive_group()
    modes.add_argument(
        "--orphans",
        dest="mode",
        action="store_const",
        const=CleanupMode.ORPHANS,
        help="Delete events unreachable from an entrypoint (default)",
    )
    modes.add_argument(
        "--version",
        dest="version",
        metavar="VERSION",
        help="Delete one version (label or key)",
    )
    modes.add_argument(
        "--all",
        dest="mode",
        action="store_const",
        const=CleanupMode.ALL,
        help="Delete every site event of the identity",
    )
    cleanup.add_argument("--relay", help="Restrict the cleanup to one relay")

    orphans = commands.add_parser(
        DELETE_ORPHANS, parents=[common], help="Shortcut for 'cleanup --orphans'"
    )
    _add_write_flags(orphans)
    orphans.add_argument("--relay", help="Restrict the cleanup to one relay")

    return parser


def _with_args(parser: argparse.ArgumentParser, *names: str) -> argparse.ArgumentParser:
    for name in names:
        parser.add_argument(name)
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments, folding aliases into their command."""
    args = build_parser().parse_args(argv)
    if args.command == DELETE_ORPHANS:
        args.command = CommandName.CLEANUP.value
        args.mode = CleanupMode.ORPHANS
        args.version = None
    return args


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def setup_logging(level: str) -> None:
    """Configure the root logger with structured formatting on stderr."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.info("config_not_found", path=str(path))
        return {}
    return load_yaml(str(path))


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def build_config_dict(args: argparse.Namespace, file_dict: dict[str, Any]) -> dict[str, Any]:
    """Shared sections, then the command's own section, then CLI flags."""
    shared = {k: v for k, v in file_dict.items() if k not in COMMAND_REGISTRY}
    data = _deep_merge(shared, file_dict.get(args.command) or {})
    # Read-only commands derive the author from the signing key's env var
    keys_env = (data.get("keys") or {}).get("keys_env")
    if not COMMAND_REGISTRY[args.command].writes and keys_env:
        data = _deep_merge({"author": {"keys_env": keys_env}}, data)

    overrides: dict[str, Any] = {}
    if getattr(args, "pubkey", None):
        overrides["author"] = {"pubkey": args.pubkey}
    if getattr(args, "source_policy", None):
        overrides["source_policy"] = args.source_policy

    if args.command == CommandName.VERSIONS:
        overrides["action"] = args.action
        overrides["version"] = getattr(args, "version", None)
        overrides["other"] = getattr(args, "other", None)
    elif args.command == CommandName.CLEANUP:
        if args.version:
            overrides["mode"] = CleanupMode.VERSION.value
            overrides["version"] = args.version
        elif args.mode is not None:
            overrides["mode"] = CleanupMode(args.mode).value
        if args.relay:
            overrides["relay"] = args.relay

    return _deep_merge(data, overrides)


def build_store(config: Any) -> NostrRelayStore:
    """Relay store for *config*; signing keys only where the command has them."""
    keys_config = getattr(config, "keys", None)
    return NostrRelayStore(
        keys=keys_config.keys if keys_config is not None else None,
        timeouts=config.timeouts,
        retry=config.retry,
        allow_insecure=config.relays.allow_insecure,
    )


# ---------------------------------------------------------------------------
# Presentation
# ---------------------------------------------------------------------------


def _render_execution(report: SyncReport | CleanupReport) -> list[str]:
    lines = [f"outcome: {report.outcome.value}"]
    if report.execution is None:
        return lines
    for relay in report.execution.relays:
        line = (
            f"  {relay.relay}: {relay.state.value} deleted={relay.deleted} "
            f"published={relay.published} failed={relay.failed}"
        )
        if relay.error:
            line += f" error={relay.error}"
        lines.append(line)
    e = report.execution
    lines.append(
        f"updated={e.relays_updated} consistent={e.relays_consistent} "
        f"failed={e.relays_failed} aborted={e.aborted}"
    )
    return lines


def render_sync(report: SyncReport) -> str:
    lines = [f"current version: {report.analysis.entrypoints.target_key or '(none)'}"]
    for key, version in report.analysis.versions.items():
        lines.append(f"{version.label} ({key}) source={report.sources.get(key) or '(none)'}")
        lines.extend(
            f"  {url}: {record.status.value}"
            for url, record in report.analysis.completeness[key].items()
        )
    lines.extend(["", report.summary.to_table(), ""])
    lines.extend(_render_execution(report))
    return "\n".join(lines)


def render_cleanup(report: CleanupReport) -> str:
    lines = [f"mode: {report.mode.value}"]
    for orphans in report.orphans.values():
        lines.append(
            f"  {orphans.relay}: site_indexes={len(orphans.site_indexes)} "
            f"manifests={len(orphans.manifests)} assets={len(orphans.assets)}"
        )
    lines.extend(["", report.summary.to_table(), ""])
    lines.extend(_render_execution(report))
    return "\n".join(lines)


def render_status(report: StatusReport) -> str:
    lines = [
        f"pubkey: {report.pubkey}",
        f"current version: {report.current_version or '(none)'}",
        f"reachable: {report.reachable}/{len(report.relays)}",
    ]
    for status in report.relays:
        if not status.connected:
            lines.append(f"  {status.relay}: unreachable ({status.error})")
            continue
        counts = " ".join(f"{kind}={n}" for kind, n in status.counts.items())
        lines.append(f"  {status.relay}: {status.latency_ms}ms {counts}")
        lines.extend(f"    warning: {w}" for w in status.warnings)
    return "\n".join(lines)


def render_versions(report: VersionsReport) -> str:
    lines = [f"pubkey: {report.pubkey}", f"current version: {report.current or '(none)'}"]
    if report.action == VersionsAction.LIST:
        for entry in report.history:
            marker = "*" if entry.is_current else " "
            lines.append(
                f"{marker} {entry.label:<16} {entry.published}  routes={entry.routes} "
                f"relays={len(entry.relays)} complete={len(entry.complete_on)}"
            )
    if report.detail is not None:
        detail = report.detail
        lines.append(f"version {detail.entry.label} ({detail.entry.key}) {detail.entry.published}")
        lines.extend(f"  {route} -> {manifest}" for route, manifest in detail.routes.items())
        lines.append(f"  default: {detail.default_route}  not found: {detail.not_found_route}")
        lines.extend(f"  {url}: {status}" for url, status in detail.completeness.items())
    if report.comparison is not None:
        c = report.comparison
        lines.append(f"{c.old.label} -> {c.new.label}")
        for name, routes in (
            ("added", c.added),
            ("removed", c.removed),
            ("modified", c.modified),
            ("unchanged", c.unchanged),
        ):
            lines.append(f"  {name}: {', '.join(routes) if routes else '-'}")
    return "\n".join(lines)


def render(report: Any, *, as_json: bool) -> str:
    """Render a command report as JSON or plain text."""
    if as_json:
        return json.dumps(report.to_dict(), indent=2)
    if isinstance(report, SyncReport):
        return render_sync(report)
    if isinstance(report, CleanupReport):
        return render_cleanup(report)
    if isinstance(report, StatusReport):
        return render_status(report)
    return render_versions(report)


def exit_code(report: Any) -> int:
    """0 when the command did what was asked, 1 otherwise."""
    if isinstance(report, SyncReport | CleanupReport):
        if report.outcome in (RunOutcome.DECLINED, RunOutcome.ABORTED):
            return 1
        if report.execution is not None and not report.execution.succeeded:
            return 1
        return 0
    if isinstance(report, StatusReport):
        return 0 if report.reachable else 1
    return 0


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


async def run_command(args: argparse.Namespace, config_dict: dict[str, Any]) -> int:
    """Validate the config, run one command, and print its report.

    Returns:
        Exit code: 0 for success, 1 for failure.

    Raises:
        ConfigurationError: If the merged configuration is invalid. No
            relay has been contacted at that point.
    """
    entry = COMMAND_REGISTRY[args.command]
    config = entry.cls.parse_config(config_dict)

    kwargs: dict[str, Any] = {}
    if entry.writes:
        kwargs["gate"] = TypedPhraseGate()
        kwargs["dry_run"] = args.dry_run
    command = entry.cls(config, build_store(config), **kwargs)

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        command.request_shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        async with command:
            report = await command.run()
    except Exception as e:  # Intentionally broad: CLI error boundary
        logger.error(f"{args.command}_failed", error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    print(render(report, as_json=args.json))
    return exit_code(report)


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, load the config, and run the command."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config_dict = build_config_dict(args, _load_yaml_dict(args.config))
        return await run_command(args, config_dict)
    except NwPublisherError as e:
        logger.error("config_invalid", error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return EXIT_INTERRUPTED


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
