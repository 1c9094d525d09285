"""WebSocket transport with TLS verification disabled.

Self-hosted relays frequently run with self-signed or expired certificates.
When an operator explicitly opts in (``relays.allow_insecure: true``), the
connection helpers in [nwpublisher.utils.protocol][] retry such relays
through [InsecureWebSocketTransport][nwpublisher.utils.transport.InsecureWebSocketTransport],
an aiohttp-based implementation of nostr-sdk's custom transport interface.

Warning:
    This transport accepts any certificate and skips hostname checks. It is
    only used as a fallback after a verified TLS connection already failed
    with a certificate error.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import ssl
from datetime import timedelta as Duration  # noqa: N812
from typing import Final

import aiohttp
from nostr_sdk import (
    ConnectionMode,
    CustomWebSocketTransport,
    WebSocketAdapter,
    WebSocketAdapterWrapper,
    WebSocketMessage,
)


DEFAULT_TIMEOUT: Final[float] = 10.0

_WS_RECV_TIMEOUT: Final[float] = 60.0
_WS_CLOSE_TIMEOUT: Final[float] = 5.0

logger = logging.getLogger(__name__)

# Multi-word patterns only: single words like "verify" also match DNS errors.
_SSL_ERROR_PATTERNS: tuple[str, ...] = (
    "ssl certificate",
    "certificate verify",
    "certificate has expired",
    "self signed certificate",
    "self-signed certificate",
    "unable to get local issuer",
    "x509",
    "tlsv1 alert",
    "ssl handshake",
    "tls handshake failed",
    "certificate_unknown",
    "certificate_expired",
    "cert verify failed",
)


def is_ssl_error(error_message: str) -> bool:
    """Check if an error message indicates an SSL/TLS certificate error."""
    error_lower = error_message.lower()
    return any(pattern in error_lower for pattern in _SSL_ERROR_PATTERNS)


def _insecure_ssl_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class InsecureWebSocketAdapter(WebSocketAdapter):
    """One open aiohttp WebSocket, exposed through nostr-sdk's adapter interface."""

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        session: aiohttp.ClientSession,
        recv_timeout: float = _WS_RECV_TIMEOUT,
        close_timeout: float = _WS_CLOSE_TIMEOUT,
    ) -> None:
        self._ws = ws
        self._session = session
        self._recv_timeout = recv_timeout
        self._close_timeout = close_timeout

    async def send(self, msg: WebSocketMessage) -> None:
        if msg.is_text():
            await self._ws.send_str(msg.text)
        elif msg.is_binary():
            await self._ws.send_bytes(msg.bytes)
        elif msg.is_ping():
            await self._ws.ping(msg.bytes)
        elif msg.is_pong():
            await self._ws.pong(msg.bytes)

    async def recv(self) -> WebSocketMessage | None:
        """Return the next message, or ``None`` once the socket is closed or idle."""
        try:
            msg = await asyncio.wait_for(self._ws.receive(), timeout=self._recv_timeout)
        except TimeoutError:
            return None

        if msg.type == aiohttp.WSMsgType.TEXT:
            return WebSocketMessage.TEXT(msg.data)
        if msg.type == aiohttp.WSMsgType.BINARY:
            return WebSocketMessage.BINARY(msg.data)
        if msg.type == aiohttp.WSMsgType.PING:
            return WebSocketMessage.PING(msg.data)
        if msg.type == aiohttp.WSMsgType.PONG:
            return WebSocketMessage.PONG(msg.data)
        return None

    async def close_connection(self) -> None:
        # aiohttp can raise several unrelated error types while tearing down.
        with contextlib.suppress(Exception):
            await asyncio.wait_for(self._ws.close(), timeout=self._close_timeout)
        with contextlib.suppress(Exception):
            await asyncio.wait_for(self._session.close(), timeout=self._close_timeout)


class InsecureWebSocketTransport(CustomWebSocketTransport):
    """nostr-sdk custom transport that opens aiohttp sockets without TLS checks.

    Note:
        ``uniffi_set_event_loop()`` must be called with the running loop
        before a client built with this transport connects.
    """

    def __init__(
        self,
        recv_timeout: float = _WS_RECV_TIMEOUT,
        close_timeout: float = _WS_CLOSE_TIMEOUT,
    ) -> None:
        self._recv_timeout = recv_timeout
        self._close_timeout = close_timeout

    async def connect(
        self,
        url: str,
        _mode: ConnectionMode,
        timeout: Duration,  # noqa: ASYNC109
    ) -> WebSocketAdapterWrapper:
        """Open a WebSocket to *url*.

        Raises:
            OSError: On any connection failure, including timeouts.
        """
        connector = aiohttp.TCPConnector(ssl=_insecure_ssl_context())
        client_timeout = aiohttp.ClientTimeout(total=timeout.total_seconds())
        session = aiohttp.ClientSession(connector=connector, timeout=client_timeout)

        try:
            ws = await session.ws_connect(url)
        except asyncio.CancelledError:
            await session.close()
            raise
        except TimeoutError:
            await session.close()
            logger.debug("insecure_ws_timeout url=%s", url)
            raise OSError(f"Connection timeout: {url}") from None
        except (aiohttp.ClientError, OSError) as e:
            await session.close()
            logger.debug("insecure_ws_connect_failed url=%s error=%s", url, e)
            raise OSError(f"Connection failed: {e}") from e

        adapter = InsecureWebSocketAdapter(
            ws,
            session,
            recv_timeout=self._recv_timeout,
            close_timeout=self._close_timeout,
        )
        return WebSocketAdapterWrapper(adapter)

    def support_ping(self) -> bool:
        return True
