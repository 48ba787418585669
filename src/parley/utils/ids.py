"""Opaque identifier helpers."""

from __future__ import annotations

import secrets


def new_id(prefix: str) -> str:
    """Return a random identifier such as ``dm_3f9c...``."""
    return f"{prefix}_{secrets.token_hex(12)}"
