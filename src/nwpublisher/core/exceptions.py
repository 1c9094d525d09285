"""nwpublisher exception hierarchy.

Provides typed exceptions that separate the two propagation policies of a
reconciliation run:

* configuration and input errors abort the run before any relay is touched;
* connectivity and per-event publishing errors are caught by the executor
  and aggregated into the execution summary.

Exception hierarchy:

```text
NwPublisherError (base, never raised directly)
├── ConfigurationError       : bad YAML, missing key, empty relay list
├── ConnectivityError        : relay unreachable, network failures
│   ├── RelayTimeoutError    : connection or response timed out
│   └── RelaySSLError        : certificate issues
├── ProtocolError            : malformed event data from a relay
├── PublishingError          : relay rejected an event or tombstone
└── VersionNotFoundError     : requested site version does not exist
```

See Also:
    [PlanExecutor][nwpublisher.services.common.executor.PlanExecutor]:
        Catches [ConnectivityError][nwpublisher.core.exceptions.ConnectivityError]
        and [PublishingError][nwpublisher.core.exceptions.PublishingError]
        per relay and per event.
    [retry_with_backoff()][nwpublisher.core.retry.retry_with_backoff]:
        Retries transient connectivity errors.
"""

from __future__ import annotations


class NwPublisherError(Exception):
    """Base exception for all nwpublisher errors.

    Never raised directly; always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(NwPublisherError):
    """Invalid or missing configuration (YAML, env vars, CLI flags).

    Raised before any network activity: an empty relay list or a missing
    signing key would otherwise produce a meaningless or dangerous plan.
    """


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(NwPublisherError):
    """Base for all relay/network connectivity errors.

    Attributes:
        relay_url: URL of the relay that could not be reached.
    """

    def __init__(self, message: str, relay_url: str | None = None) -> None:
        super().__init__(message)
        self.relay_url = relay_url


class RelayTimeoutError(ConnectivityError):
    """Connection or response timed out."""


class RelaySSLError(ConnectivityError):
    """TLS/SSL certificate or handshake failure."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(NwPublisherError):
    """Event data received from a relay violates the Nostr envelope rules."""


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


class PublishingError(NwPublisherError):
    """A relay rejected an event or a deletion request.

    Attributes:
        relay_url: URL of the rejecting relay.
        event_id: Id of the rejected event.
    """

    def __init__(self, message: str, relay_url: str | None = None, event_id: str | None = None) -> None:
        super().__init__(message)
        self.relay_url = relay_url
        self.event_id = event_id


# ---------------------------------------------------------------------------
# Operator
# ---------------------------------------------------------------------------


class VersionNotFoundError(NwPublisherError):
    """No relay holds a site-index for the requested version.

    Attributes:
        version: The version label or key that was looked up.
    """

    def __init__(self, version: str) -> None:
        super().__init__(f"Version not found on any relay: {version}")
        self.version = version
