"""Choosing the relay each version is copied from.

Only relays holding a version's full closure are candidates. A version
without any candidate has no source and is treated as orphaned.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import Protocol

from .analyzer import GraphAnalysis


class SourcePolicy(StrEnum):
    """Built-in source selection policies."""

    SMALLEST_URL = "smallest_url"
    CONFIGURED_ORDER = "configured_order"
    LOWEST_LATENCY = "lowest_latency"


class SourceSelector(Protocol):
    def choose(self, version_key: str, complete_relays: Sequence[str]) -> str | None:
        """Pick one of *complete_relays* (configured order), or ``None`` if empty."""
        ...


class SmallestUrlSelector:
    """Deterministic default: the lexicographically smallest relay URL."""

    def choose(self, version_key: str, complete_relays: Sequence[str]) -> str | None:  # noqa: ARG002
        return min(complete_relays, default=None)


class ConfiguredOrderSelector:
    """The first complete relay in the configured relay list."""

    def choose(self, version_key: str, complete_relays: Sequence[str]) -> str | None:  # noqa: ARG002
        return complete_relays[0] if complete_relays else None


class LowestLatencySelector:
    """The complete relay with the lowest measured latency.

    Relays without a measurement rank last; ties fall back to the smaller URL.
    """

    def __init__(self, latencies: Mapping[str, float | None]) -> None:
        self._latencies = dict(latencies)

    def choose(self, version_key: str, complete_relays: Sequence[str]) -> str | None:  # noqa: ARG002
        def _rank(url: str) -> tuple[float, str]:
            latency = self._latencies.get(url)
            return (math.inf if latency is None else latency, url)

        return min(complete_relays, key=_rank, default=None)


def make_selector(
    policy: SourcePolicy, latencies: Mapping[str, float | None] | None = None
) -> SourceSelector:
    if policy == SourcePolicy.CONFIGURED_ORDER:
        return ConfiguredOrderSelector()
    if policy == SourcePolicy.LOWEST_LATENCY:
        return LowestLatencySelector(latencies or {})
    return SmallestUrlSelector()


def select_sources(analysis: GraphAnalysis, selector: SourceSelector) -> dict[str, str | None]:
    """Map every version key to its source relay, or ``None`` when orphaned."""
    return {
        key: selector.choose(key, analysis.complete_relays(key)) for key in analysis.versions
    }
