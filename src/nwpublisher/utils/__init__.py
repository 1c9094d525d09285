"""Nostr key management and WebSocket transport.

The utils layer sits in the middle of the diamond DAG, depending only on
[nwpublisher.models][nwpublisher.models]. It provides the low-level network
and cryptographic helpers used by [nwpublisher.services][nwpublisher.services].

Attributes:
    keys: Signing key loading from environment variables (nsec1 bech32 or
        hex) with Pydantic validation.
    protocol: Client factory, relay connection, bounded event fetching,
        sending pre-signed events, and signed tombstone construction.
    transport: aiohttp WebSocket transport used as a TLS-verification-free
        fallback for self-hosted relays.

Note:
    The utils layer has **zero** imports from ``nwpublisher.core`` or
    ``nwpublisher.services``.

Examples:
    ```python
    from nwpublisher.utils.protocol import connect_relay
    from nwpublisher.utils.keys import KeysConfig
    ```
"""
