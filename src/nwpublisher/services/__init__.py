"""Operator commands plus shared building blocks.

Services are the top layer of the diamond DAG, depending on
[nwpublisher.core][nwpublisher.core], [nwpublisher.utils][nwpublisher.utils],
and [nwpublisher.models][nwpublisher.models]. Each command extends
[BaseCommand][nwpublisher.core.base_command.BaseCommand] and implements
``async def run()`` returning a structured report.

```text
sync      snapshot -> analyze -> select sources -> plan -> confirm -> execute
cleanup   snapshot -> orphans / version / all -> plan -> confirm -> execute
status    connect + count per relay
versions  snapshot -> analyze -> list / show / compare
```

Attributes:
    SyncCommand: Multi-relay reconciliation of the site graph.
    CleanupCommand: Deletion of orphaned content, one version, or everything.
    StatusCommand: Per-relay connectivity and event counts.
    VersionsCommand: Version history, details and comparison.

See Also:
    [common][nwpublisher.services.common]: Relay store, plans, executor and
        confirmation gates shared by all commands.
"""

from .cleanup import CleanupCommand, CleanupConfig
from .status import StatusCommand, StatusConfig
from .sync import SyncCommand, SyncConfig
from .versions import VersionsCommand, VersionsConfig


__all__ = [
    "CleanupCommand",
    "CleanupConfig",
    "StatusCommand",
    "StatusConfig",
    "SyncCommand",
    "SyncConfig",
    "VersionsCommand",
    "VersionsConfig",
]
