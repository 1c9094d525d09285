"""Status command package.

Re-exports all public symbols::

    from nwpublisher.services.status import StatusCommand, StatusConfig
"""

from .service import RelayStatus, StatusCommand, StatusConfig, StatusReport, count_by_kind


__all__ = [
    "RelayStatus",
    "StatusCommand",
    "StatusConfig",
    "StatusReport",
    "count_by_kind",
]
