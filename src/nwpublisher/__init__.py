r"""nw-publisher: multi-relay reconciliation for static sites on Nostr.

A site is published as a graph of signed events (assets, manifests, a
site-index per version, and an entrypoint pointing at the current version).
nw-publisher makes every configured relay hold the same, complete copy of
that graph, and cleans up what no longer belongs.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
              services         Commands and orchestration
             /        \
          core        utils    Infrastructure, protocol, and helpers
             \        /
              models           Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Pure frozen dataclasses. Zero I/O, depends only on stdlib and
        rfc3986.
    core: Base command, relay store interface, exceptions, logging, retry.
    utils: Nostr key management, nostr-sdk client helpers, WebSocket
        transport.
    services: The ``sync``, ``cleanup``, ``status`` and ``versions``
        commands.

Note:
    Top-level imports (``from nwpublisher import SyncCommand``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("nw-publisher")

__all__ = [
    "BaseCommand",
    "CleanupCommand",
    "CleanupConfig",
    "GraphEvent",
    "Logger",
    "NostrRelayStore",
    "Relay",
    "StatusCommand",
    "StatusConfig",
    "SyncCommand",
    "SyncConfig",
    "VersionsCommand",
    "VersionsConfig",
    "parse_event",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseCommand": ("nwpublisher.core", "BaseCommand"),
    "Logger": ("nwpublisher.core", "Logger"),
    "GraphEvent": ("nwpublisher.models", "GraphEvent"),
    "Relay": ("nwpublisher.models", "Relay"),
    "parse_event": ("nwpublisher.models", "parse_event"),
    "NostrRelayStore": ("nwpublisher.services.common", "NostrRelayStore"),
    "CleanupCommand": ("nwpublisher.services", "CleanupCommand"),
    "CleanupConfig": ("nwpublisher.services", "CleanupConfig"),
    "StatusCommand": ("nwpublisher.services", "StatusCommand"),
    "StatusConfig": ("nwpublisher.services", "StatusConfig"),
    "SyncCommand": ("nwpublisher.services", "SyncCommand"),
    "SyncConfig": ("nwpublisher.services", "SyncConfig"),
    "VersionsCommand": ("nwpublisher.services", "VersionsCommand"),
    "VersionsConfig": ("nwpublisher.services", "VersionsConfig"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'nwpublisher' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
