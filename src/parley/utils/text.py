"""Text validation helpers."""

from __future__ import annotations

from parley.core.errors import InvalidInput


def require_utf8(value: str, field: str) -> str:
    """Return ``value`` if it encodes as UTF-8 (no lone surrogates)."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as err:
        raise InvalidInput(f"{field} must be valid UTF-8 text") from err
    return value
