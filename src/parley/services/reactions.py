"""Emoji reactions with toggle semantics."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from parley.core.errors import Forbidden, InvalidInput, NotFound
from parley.core.settings import Settings, settings
from parley.models import DirectMessage, DMThread, MessageReaction
from parley.utils.text import require_utf8

logger = logging.getLogger(__name__)


class ReactionAggregator:
    """Maintain the set of ``(emoji, user)`` pairs attached to each message."""

    def __init__(self, session: Session, config: Settings | None = None) -> None:
        self.session = session
        self.settings = config or settings

    def _validate_emoji(self, emoji: str) -> str:
        emoji = (emoji or "").strip()
        if not emoji:
            raise InvalidInput("Emoji is required")
        if len(emoji) > self.settings.dm_max_emoji_chars:
            raise InvalidInput("Emoji is too long")
        return require_utf8(emoji, "Emoji")

    def toggle(self, message_id: str, user_id: str, emoji: str) -> bool:
        """Add the reaction if absent, remove it if present.

        Returns:
            True if the reaction is now present, False if it was removed.
        """
        emoji = self._validate_emoji(emoji)

        for attempt in range(2):
            message = self.session.get(DirectMessage, message_id)
            if message is None:
                raise NotFound("Message not found")
            thread = self.session.get(DMThread, message.thread_id)
            if thread is None or user_id not in thread.participants:
                raise Forbidden("Not a participant of this thread")

            existing = self.session.get(
                MessageReaction,
                (message_id, emoji, user_id),
                populate_existing=True,
            )
            if existing is not None:
                self.session.delete(existing)
                added = False
            else:
                self.session.add(MessageReaction(message_id=message_id, emoji=emoji, user_id=user_id))
                added = True

            try:
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                if attempt:
                    raise
                logger.info("Reaction toggle on %s raced another toggle; retrying", message_id)
                continue
            except Exception:
                self.session.rollback()
                raise
            return added
        raise RuntimeError("unreachable")  # pragma: no cover

    def reactions_for(self, message_ids: Iterable[str]) -> dict[str, dict[str, list[str]]]:
        """Return ``{message_id: {emoji: [user ids]}}`` for the given messages."""
        ids = list(message_ids)
        grouped: dict[str, dict[str, list[str]]] = {message_id: {} for message_id in ids}
        if not ids:
            return grouped

        rows = self.session.execute(
            select(MessageReaction)
            .where(MessageReaction.message_id.in_(ids))
            .order_by(MessageReaction.emoji, MessageReaction.user_id)
        ).scalars()
        buckets: dict[str, dict[str, list[str]]] = defaultdict(lambda: defaultdict(list))
        for row in rows:
            buckets[row.message_id][row.emoji].append(row.user_id)
        for message_id, by_emoji in buckets.items():
            grouped[message_id] = {emoji: users for emoji, users in by_emoji.items()}
        return grouped
