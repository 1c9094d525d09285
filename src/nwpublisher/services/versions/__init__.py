"""Versions command package.

Re-exports all public symbols::

    from nwpublisher.services.versions import VersionsCommand, VersionsConfig
"""

from .service import (
    VersionComparison,
    VersionDetail,
    VersionEntry,
    VersionsAction,
    VersionsCommand,
    VersionsConfig,
    VersionsReport,
    compare_routes,
    find_version,
    version_history,
)


__all__ = [
    "VersionComparison",
    "VersionDetail",
    "VersionEntry",
    "VersionsAction",
    "VersionsCommand",
    "VersionsConfig",
    "VersionsReport",
    "compare_routes",
    "find_version",
    "version_history",
]
