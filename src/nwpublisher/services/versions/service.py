"""Versions command: site version history across relays.

The merged site-index set of all relays forms the history, oldest first.
The current version is the target of the newest entrypoint. Three actions:

- ``list``: every version with its date, route count and relays.
- ``show``: one version's routes and the completeness of its copy on
  each relay.
- ``compare``: route-level differences between two versions.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import Field, model_validator

from nwpublisher.core.base_command import BaseCommand, BaseCommandConfig
from nwpublisher.core.exceptions import VersionNotFoundError
from nwpublisher.models.constants import CommandName
from nwpublisher.services.common.configs import AuthorConfig
from nwpublisher.services.common.snapshot import collect_snapshot
from nwpublisher.services.sync.analyzer import GraphAnalysis, VersionInfo, analyze_graph


if TYPE_CHECKING:
    from nwpublisher.models.graph import SiteIndexEvent


class VersionsAction(StrEnum):
    LIST = "list"
    SHOW = "show"
    COMPARE = "compare"


class VersionsConfig(BaseCommandConfig):
    """Versions command configuration.

    Attributes:
        action: What to report.
        version: Version label or key for ``show`` and the first side of
            ``compare``.
        other: Second side of ``compare``.
    """

    author: AuthorConfig = Field(default_factory=lambda: AuthorConfig.model_validate({}))
    action: VersionsAction = VersionsAction.LIST
    version: str | None = None
    other: str | None = None

    @model_validator(mode="after")
    def _validate_action(self) -> VersionsConfig:
        if self.action != VersionsAction.LIST and not self.version:
            raise ValueError(f"action '{self.action}' requires a version")
        if self.action == VersionsAction.COMPARE and not self.other:
            raise ValueError("action 'compare' requires two versions")
        return self


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class VersionEntry:
    """One row of the version history."""

    key: str
    label: str
    created_at: int
    routes: int
    relays: tuple[str, ...]
    complete_on: tuple[str, ...]
    is_current: bool = False

    @property
    def published(self) -> str:
        return datetime.fromtimestamp(self.created_at, tz=UTC).strftime("%Y-%m-%d %H:%M:%S")

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "version": self.label,
            "created_at": self.created_at,
            "published": self.published,
            "routes": self.routes,
            "relays": list(self.relays),
            "complete_on": list(self.complete_on),
            "current": self.is_current,
        }


@dataclass(frozen=True, slots=True)
class VersionDetail:
    entry: VersionEntry
    routes: Mapping[str, str]
    default_route: str | None
    not_found_route: str | None
    completeness: Mapping[str, str]

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.entry.to_dict(),
            "route_table": dict(self.routes),
            "default_route": self.default_route,
            "not_found_route": self.not_found_route,
            "completeness": dict(self.completeness),
        }


@dataclass(frozen=True, slots=True)
class VersionComparison:
    """Route differences from ``old`` to ``new``.

    A route is modified when both versions serve it from different manifests.
    """

    old: VersionEntry
    new: VersionEntry
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    modified: tuple[str, ...] = ()
    unchanged: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "old": self.old.to_dict(),
            "new": self.new.to_dict(),
            "added": list(self.added),
            "removed": list(self.removed),
            "modified": list(self.modified),
            "unchanged": list(self.unchanged),
        }


@dataclass(frozen=True, slots=True)
class VersionsReport:
    action: VersionsAction
    pubkey: str
    history: tuple[VersionEntry, ...] = ()
    detail: VersionDetail | None = None
    comparison: VersionComparison | None = None
    current: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "action": self.action.value,
            "pubkey": self.pubkey,
            "current": self.current,
        }
        if self.action == VersionsAction.LIST:
            data["versions"] = [e.to_dict() for e in self.history]
        elif self.detail is not None:
            data["version"] = self.detail.to_dict()
        if self.comparison is not None:
            data["comparison"] = self.comparison.to_dict()
        return data


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def version_history(analysis: GraphAnalysis) -> list[VersionEntry]:
    """Every version in *analysis*, oldest first, with the current one marked."""
    current = analysis.entrypoints.target_key
    return [
        VersionEntry(
            key=key,
            label=info.label,
            created_at=info.created_at,
            routes=len(info.site_index.routes),
            relays=tuple(info.relays),
            complete_on=tuple(analysis.complete_relays(key)),
            is_current=key == current,
        )
        for key, info in analysis.versions.items()
    ]


def find_version(analysis: GraphAnalysis, version: str) -> VersionInfo:
    """Look up a version by key, else by label (newest match wins).

    Raises:
        VersionNotFoundError: If nothing matches.
    """
    if version in analysis.versions:
        return analysis.versions[version]
    matches = [info for info in analysis.versions.values() if info.label == version]
    if not matches:
        raise VersionNotFoundError(version)
    return matches[-1]


def compare_routes(
    old: SiteIndexEvent, new: SiteIndexEvent
) -> tuple[list[str], list[str], list[str], list[str]]:
    """Return ``(added, removed, modified, unchanged)`` route lists, each sorted."""
    old_routes, new_routes = old.routes, new.routes
    added = sorted(r for r in new_routes if r not in old_routes)
    removed = sorted(r for r in old_routes if r not in new_routes)
    shared = sorted(r for r in old_routes if r in new_routes)
    modified = [r for r in shared if old_routes[r] != new_routes[r]]
    unchanged = [r for r in shared if old_routes[r] == new_routes[r]]
    return added, removed, modified, unchanged


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


class VersionsCommand(BaseCommand[VersionsConfig, VersionsReport]):
    """List, show, or compare site versions found on the relays."""

    COMMAND_NAME: ClassVar[CommandName] = CommandName.VERSIONS
    CONFIG_CLASS: ClassVar[type[VersionsConfig]] = VersionsConfig

    async def run(self) -> VersionsReport:
        pubkey = self._config.author.pubkey
        action = self._config.action
        self._logger.info("versions_started", action=action.value, pubkey=pubkey)

        snapshot = await collect_snapshot(self._store, self.relays, pubkey)
        analysis = analyze_graph(snapshot.events)
        history = version_history(analysis)
        by_key = {entry.key: entry for entry in history}
        current = analysis.current_version
        report_args: dict[str, Any] = {
            "action": action,
            "pubkey": pubkey,
            "history": tuple(history),
            "current": current.label if current is not None else None,
        }

        if action == VersionsAction.SHOW:
            info = find_version(analysis, self._config.version or "")
            site_index = info.site_index
            report_args["detail"] = VersionDetail(
                entry=by_key[info.key],
                routes=dict(sorted(site_index.routes.items())),
                default_route=site_index.default_route,
                not_found_route=site_index.not_found_route,
                completeness={
                    url: record.status.value
                    for url, record in analysis.completeness[info.key].items()
                },
            )
        elif action == VersionsAction.COMPARE:
            old = find_version(analysis, self._config.version or "")
            new = find_version(analysis, self._config.other or "")
            added, removed, modified, unchanged = compare_routes(old.site_index, new.site_index)
            report_args["comparison"] = VersionComparison(
                old=by_key[old.key],
                new=by_key[new.key],
                added=tuple(added),
                removed=tuple(removed),
                modified=tuple(modified),
                unchanged=tuple(unchanged),
            )

        self._logger.info("versions_completed", versions=len(history))
        return VersionsReport(**report_args)
