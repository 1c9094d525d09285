"""
Unit tests for models.relay module.

Tests:
- URL normalization (case, default ports, trailing slashes)
- Scheme, host, port and path extraction
- Rejection of unsupported schemes, queries, fragments and null bytes
- Equality based on the normalized URL
"""

import pytest

from nwpublisher.models import Relay


class TestRelayNormalization:
    """Relay URLs are normalized to a single spelling."""

    def test_lowercases_host(self) -> None:
        assert Relay("wss://Relay.Example.COM").url == "wss://relay.example.com"

    def test_strips_default_port(self) -> None:
        assert Relay("wss://relay.example.com:443").url == "wss://relay.example.com"
        assert Relay("ws://relay.example.com:80").url == "ws://relay.example.com"

    def test_keeps_custom_port(self) -> None:
        relay = Relay("ws://localhost:7777")
        assert relay.url == "ws://localhost:7777"
        assert relay.port == 7777

    def test_collapses_slashes(self) -> None:
        relay = Relay("wss://relay.example.com//nostr//")
        assert relay.url == "wss://relay.example.com/nostr"
        assert relay.path == "/nostr"

    def test_trailing_slash_removed(self) -> None:
        assert Relay("wss://nos.lol/").url == "wss://nos.lol"


class TestRelayProperties:
    """Derived attributes."""

    def test_secure(self) -> None:
        assert Relay("wss://nos.lol").secure is True
        assert Relay("ws://localhost").secure is False

    def test_str(self) -> None:
        assert str(Relay("wss://NOS.lol")) == "wss://nos.lol"

    def test_equality_uses_normalized_url(self) -> None:
        assert Relay("wss://nos.lol:443/") == Relay("wss://NOS.LOL")
        assert len({Relay("wss://nos.lol"), Relay("wss://nos.lol/")}) == 1


class TestRelayValidation:
    """Invalid URLs are rejected."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://relay.example.com",
            "relay.example.com",
            "wss://relay.example.com?x=1",
            "wss://relay.example.com#frag",
            "wss://",
        ],
    )
    def test_invalid(self, url: str) -> None:
        with pytest.raises(ValueError):
            Relay(url)

    def test_null_bytes(self) -> None:
        with pytest.raises(ValueError, match="null"):
            Relay("wss://relay\x00.example.com")

    def test_non_string(self) -> None:
        with pytest.raises(TypeError):
            Relay(123)  # type: ignore[arg-type]
