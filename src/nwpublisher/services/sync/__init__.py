"""Sync command package.

Re-exports all public symbols::

    from nwpublisher.services.sync import SyncCommand, SyncConfig
"""

from .analyzer import (
    EntrypointAnalysis,
    GraphAnalysis,
    RelayContents,
    SiteIndexOccurrence,
    VersionCompleteness,
    VersionInfo,
    analyze_entrypoints,
    analyze_graph,
    build_version_table,
    check_completeness,
)
from .configs import SyncConfig
from .planner import build_sync_plan, version_closure
from .selector import (
    ConfiguredOrderSelector,
    LowestLatencySelector,
    SmallestUrlSelector,
    SourcePolicy,
    SourceSelector,
    make_selector,
    select_sources,
)
from .service import SyncCommand, SyncReport


__all__ = [
    "ConfiguredOrderSelector",
    "EntrypointAnalysis",
    "GraphAnalysis",
    "LowestLatencySelector",
    "RelayContents",
    "SiteIndexOccurrence",
    "SmallestUrlSelector",
    "SourcePolicy",
    "SourceSelector",
    "SyncCommand",
    "SyncConfig",
    "SyncReport",
    "VersionCompleteness",
    "VersionInfo",
    "analyze_entrypoints",
    "analyze_graph",
    "build_sync_plan",
    "build_version_table",
    "check_completeness",
    "make_selector",
    "select_sources",
    "version_closure",
]
