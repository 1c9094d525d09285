"""
Validated Nostr relay URL.

Parses, normalizes, and validates WebSocket relay URLs (``ws://`` or
``wss://``). The normalized ``url`` is the identity used everywhere a relay
is a map key (snapshots, completeness tables, plans), so two spellings of
the same relay collapse to one entry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator


@dataclass(frozen=True, slots=True)
class Relay:
    """Immutable representation of a Nostr relay endpoint.

    Unlike public-network crawlers, an operator may legitimately publish to
    a relay on ``localhost`` or a private address, and chooses the scheme
    explicitly, so neither is rewritten here.

    Attributes:
        url: Fully normalized URL including scheme.
        scheme: URL scheme (``ws`` or ``wss``).
        host: Hostname or IP address (brackets stripped for IPv6).
        port: Explicit port number, or ``None`` when using the default.
        path: URL path component, or ``None``.

    Raises:
        ValueError: If the URL is malformed, uses an unsupported scheme,
            carries a query string or fragment, or contains null bytes.

    Examples:
        ```python
        relay = Relay("wss://Relay.Example.com:443//")
        relay.url       # 'wss://relay.example.com'
        relay.secure    # True
        ```
    """

    raw_url: str = field(repr=False, compare=False)

    url: str = field(init=False)
    scheme: str = field(init=False, compare=False)
    host: str = field(init=False, compare=False)
    port: int | None = field(init=False, compare=False)
    path: str | None = field(init=False, compare=False)

    _PORT_WS: ClassVar[int] = 80
    _PORT_WSS: ClassVar[int] = 443

    def __post_init__(self) -> None:
        if not isinstance(self.raw_url, str):
            raise TypeError(f"Relay URL must be a str, got {type(self.raw_url).__name__}")
        if "\x00" in self.raw_url:
            raise ValueError("Relay URL contains null bytes")

        uri = uri_reference(self.raw_url.strip()).normalize()

        validator = (
            Validator()
            .require_presence_of("scheme", "host")
            .allow_schemes("ws", "wss")
            .check_validity_of("scheme", "host", "port", "path")
        )
        try:
            validator.validate(uri)
        except UnpermittedComponentError:
            raise ValueError(f"Invalid scheme in {self.raw_url!r}: must be ws or wss") from None
        except ValidationError as e:
            raise ValueError(f"Invalid relay URL {self.raw_url!r}: {e}") from None

        if uri.query:
            raise ValueError(f"Relay URL must not contain a query string: ?{uri.query}")
        if uri.fragment:
            raise ValueError(f"Relay URL must not contain a fragment: #{uri.fragment}")

        scheme = uri.scheme
        host = uri.host.strip("[]")
        if not host:
            raise ValueError(f"Invalid relay URL {self.raw_url!r}: empty host")
        port = int(uri.port) if uri.port else None

        path = uri.path or ""
        while "//" in path:
            path = path.replace("//", "/")
        path = path.rstrip("/") or None

        formatted_host = f"[{host}]" if ":" in host else host
        default_port = self._PORT_WSS if scheme == "wss" else self._PORT_WS
        if port and port != default_port:
            authority = f"{formatted_host}:{port}"
        else:
            authority = formatted_host
            port = None

        object.__setattr__(self, "url", f"{scheme}://{authority}{path or ''}")
        object.__setattr__(self, "scheme", scheme)
        object.__setattr__(self, "host", host)
        object.__setattr__(self, "port", port)
        object.__setattr__(self, "path", path)

    @property
    def secure(self) -> bool:
        """Whether the relay is reached over TLS."""
        return self.scheme == "wss"

    def __str__(self) -> str:
        return self.url
