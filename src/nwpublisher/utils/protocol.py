"""Nostr protocol client operations for nwpublisher.

Thin async wrappers over ``nostr_sdk.Client`` used by the relay event store:
client factory, connection with optional TLS fallback, bounded event
fetching, sending pre-signed events, and building signed tombstones.

Note:
    The TLS fallback follows a two-phase approach: first a fully verified
    connection, then, only if the failure is certificate-related and the
    operator allowed it,
    [InsecureWebSocketTransport][nwpublisher.utils.transport.InsecureWebSocketTransport].

Examples:
    ```python
    client = await connect_relay(relay, timeout=10.0)
    events = await fetch_events(client, site_filter(pubkey), timeout=30.0)
    error = await send_event(client, nostr_event)
    await shutdown_client(client)
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import ssl
from collections.abc import Iterable
from datetime import timedelta
from typing import TYPE_CHECKING

from nostr_sdk import (
    Client,
    ClientBuilder,
    EventBuilder,
    Filter,
    Kind,
    NostrSigner,
    PublicKey,
    RelayUrl,
    Tag,
    uniffi_set_event_loop,
)
from nostr_sdk import Event as NostrEvent

from nwpublisher.models.constants import TAG_EVENT, TAG_KIND, EventKind
from nwpublisher.models.relay import Relay  # noqa: TC001
from nwpublisher.utils.transport import DEFAULT_TIMEOUT, InsecureWebSocketTransport, is_ssl_error


if TYPE_CHECKING:
    from nostr_sdk import Keys


logger = logging.getLogger(__name__)


def create_client(keys: Keys | None = None, *, allow_insecure: bool = False) -> Client:
    """Create a Nostr client, optionally signing and optionally skipping TLS checks.

    Args:
        keys: Optional signing keys (``None`` = read-only client).
        allow_insecure: Use
            [InsecureWebSocketTransport][nwpublisher.utils.transport.InsecureWebSocketTransport].

    Returns:
        Configured ``Client`` (call ``add_relay()`` before use).
    """
    builder = ClientBuilder()
    if keys is not None:
        builder = builder.signer(NostrSigner.keys(keys))
    if allow_insecure:
        builder = builder.websocket_transport(InsecureWebSocketTransport())
    return builder.build()


async def _try_connect(
    relay_url: RelayUrl,
    keys: Keys | None,
    timeout: float,  # noqa: ASYNC109
    *,
    insecure: bool,
) -> tuple[Client | None, str | None]:
    """Return ``(client, None)`` on success or ``(None, error)`` on failure."""
    client = create_client(keys, allow_insecure=insecure)
    await client.add_relay(relay_url)
    output = await client.try_connect(timedelta(seconds=timeout))
    if relay_url in output.success:
        return client, None
    await shutdown_client(client)
    return None, output.failed.get(relay_url, "Unknown error")


async def connect_relay(
    relay: Relay,
    keys: Keys | None = None,
    timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
    *,
    allow_insecure: bool = False,
) -> Client:
    """Connect to a single relay, falling back to an insecure transport if allowed.

    Args:
        relay: [Relay][nwpublisher.models.relay.Relay] to connect to.
        keys: Optional signing keys.
        timeout: Connection timeout in seconds.
        allow_insecure: Retry certificate failures without TLS verification.

    Returns:
        Connected ``Client`` ready for use.

    Raises:
        OSError: If the connection fails for a non-certificate reason.
        ssl.SSLCertVerificationError: If the certificate is rejected and
            ``allow_insecure`` is ``False``.
    """
    relay_url = RelayUrl.parse(relay.url)

    logger.debug("relay_connecting relay=%s", relay.url)
    client, error = await _try_connect(relay_url, keys, timeout, insecure=False)
    if client is not None:
        logger.debug("relay_connected relay=%s", relay.url)
        return client

    logger.debug("connect_failed relay=%s error=%s", relay.url, error)
    if not relay.secure or not is_ssl_error(error):
        raise OSError(f"Connection failed: {relay.url} ({error})")
    if not allow_insecure:
        raise ssl.SSLCertVerificationError(
            f"SSL certificate verification failed for {relay.url}: {error}"
        )

    logger.debug("ssl_fallback_insecure relay=%s", relay.url)
    uniffi_set_event_loop(asyncio.get_running_loop())

    client, error = await _try_connect(relay_url, keys, timeout, insecure=True)
    if client is None:
        raise OSError(f"Connection failed (insecure): {relay.url} ({error})")

    logger.debug("insecure_connected relay=%s", relay.url)
    return client


async def shutdown_client(client: Client) -> None:
    """Disconnect and release a client, ignoring teardown errors."""
    # nostr-sdk Rust FFI can raise arbitrary exception types during shutdown.
    with contextlib.suppress(Exception):
        await client.shutdown()


def site_filter(pubkey: str, kinds: Iterable[int]) -> Filter:
    """Filter for every event of *kinds* authored by *pubkey*."""
    return Filter().kinds([Kind(k) for k in kinds]).authors([PublicKey.parse(pubkey)])


async def fetch_events(
    client: Client,
    event_filter: Filter,
    timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
) -> list[NostrEvent]:
    """Fetch events matching *event_filter* until EOSE or *timeout*.

    Events received before the timeout are kept. Events that fail
    signature verification are dropped.
    """
    events = await client.fetch_events(event_filter, timedelta(seconds=timeout))
    verified = []
    for evt in events.to_vec():
        try:
            if evt.verify():
                verified.append(evt)
        except (ValueError, TypeError, OverflowError):
            continue
    return verified


async def send_event(client: Client, event: NostrEvent) -> str | None:
    """Send an already-signed event to the client's relays.

    Returns:
        ``None`` if every relay accepted the event, else the first
        rejection message.
    """
    output = await client.send_event(event)
    if output.failed:
        return next(iter(output.failed.values())) or "rejected"
    if not output.success:
        return "no relay acknowledged the event"
    return None


def build_deletion(
    target_ids: Iterable[str],
    reason: str,
    keys: Keys,
    kinds: Iterable[int] = (),
) -> NostrEvent:
    """Build and sign a NIP-09 deletion request for *target_ids*.

    Args:
        target_ids: Hex ids of the events to delete.
        reason: Human-readable reason stored as the event content.
        keys: Signing keys; must be the author of the targets.
        kinds: Kinds of the targeted events, added as ``k`` tags.
    """
    tags = [Tag.parse([TAG_EVENT, event_id]) for event_id in target_ids]
    tags.extend(Tag.parse([TAG_KIND, str(kind)]) for kind in sorted(set(kinds)))
    return EventBuilder(Kind(EventKind.DELETION), reason).tags(tags).sign_with_keys(keys)
