"""Cleanup command package.

Re-exports all public symbols::

    from nwpublisher.services.cleanup import CleanupCommand, CleanupConfig
"""

from .configs import CleanupConfig, CleanupMode
from .orphans import OrphanReport, detect_orphans, detect_orphans_per_relay
from .service import (
    CleanupCommand,
    CleanupReport,
    build_full_cleanup_plan,
    build_orphan_plan,
    build_version_plan,
    version_targets,
)


__all__ = [
    "CleanupCommand",
    "CleanupConfig",
    "CleanupMode",
    "CleanupReport",
    "OrphanReport",
    "build_full_cleanup_plan",
    "build_orphan_plan",
    "build_version_plan",
    "detect_orphans",
    "detect_orphans_per_relay",
    "version_targets",
]
