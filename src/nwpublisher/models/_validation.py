"""Shared validation helpers for frozen dataclass models.

Private module, not part of the public API. Used by ``__post_init__``
methods in sibling model modules to enforce the Nostr envelope rules at
the boundary where relay data enters the system.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any


_HEX_DIGITS = frozenset("0123456789abcdef")


def validate_instance(value: Any, expected: type, name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        article = "an" if expected.__name__[0] in "AEIOUaeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {type(value).__name__}")


def validate_timestamp(value: Any, name: str) -> None:
    """Raise if *value* is not a non-negative ``int`` (``bool`` excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")


def validate_str_no_null(value: Any, name: str) -> None:
    """Raise if *value* is not a ``str`` or contains null bytes."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")


def validate_hex(value: Any, length: int, name: str) -> None:
    """Raise if *value* is not a lowercase hex string of exactly *length* chars."""
    validate_str_no_null(value, name)
    if len(value) != length or not _HEX_DIGITS.issuperset(value):
        raise ValueError(f"{name} must be {length} lowercase hex characters")


def is_hex(value: Any, length: int) -> bool:
    """Return True if *value* is a lowercase hex string of *length* chars."""
    return isinstance(value, str) and len(value) == length and _HEX_DIGITS.issuperset(value)


def deep_freeze(obj: Any) -> Any:
    """Recursively wrap mappings with ``MappingProxyType`` to prevent mutation."""
    if isinstance(obj, Mapping):
        return MappingProxyType({k: deep_freeze(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return tuple(deep_freeze(item) for item in obj)
    return obj
