"""Canonical thread identifiers for two-party conversations.

A thread id is the two user ids sorted lexicographically and joined with
``THREAD_ID_SEPARATOR``. User ids may not contain the separator, so the pair is
always recoverable by splitting.
"""

from __future__ import annotations

from typing import Final

from parley.core.errors import InvalidInput

THREAD_ID_SEPARATOR: Final[str] = "|"


def _validate_user_id(user_id: str) -> None:
    if not user_id:
        raise InvalidInput("User id must not be empty")
    if THREAD_ID_SEPARATOR in user_id:
        raise InvalidInput(f"User id must not contain {THREAD_ID_SEPARATOR!r}")


def derive_thread_id(user_a: str, user_b: str) -> str:
    """Return the canonical thread id for an unordered pair of users.

    Raises:
        InvalidInput: If either id is empty or contains the separator, or if
            both ids are the same user.
    """
    _validate_user_id(user_a)
    _validate_user_id(user_b)
    if user_a == user_b:
        raise InvalidInput("Cannot open a thread with yourself")
    first, second = sorted((user_a, user_b))
    return f"{first}{THREAD_ID_SEPARATOR}{second}"


def split_thread_id(thread_id: str) -> tuple[str, str]:
    """Return the two participants encoded in ``thread_id`` (sorted)."""
    parts = thread_id.split(THREAD_ID_SEPARATOR)
    if len(parts) != 2:
        raise InvalidInput("Malformed thread id")
    first, second = parts
    if derive_thread_id(first, second) != thread_id:
        raise InvalidInput("Thread id is not in canonical form")
    return first, second


def other_participant(thread_id: str, user_id: str) -> str:
    """Return the participant of ``thread_id`` that is not ``user_id``."""
    first, second = split_thread_id(thread_id)
    if user_id == first:
        return second
    if user_id == second:
        return first
    raise InvalidInput("User is not a participant of this thread")
