"""Inbox view derived from the ledger and read markers."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from parley.core.settings import Settings, settings
from parley.models import DirectMessage, DMThread
from parley.services.ledger import MessageLedger
from parley.services.read_tracker import ReadTracker


@dataclass(frozen=True)
class ConversationSummary:
    """One inbox row."""

    thread_id: str
    other_user_id: str
    last_message: DirectMessage | None
    unread_count: int


def _recency_key(summary: ConversationSummary) -> tuple[bool, int, int, str]:
    message = summary.last_message
    if message is None:
        return False, 0, 0, summary.thread_id
    return (True, *message.order_key, summary.thread_id)


class ConversationIndex:
    """Compute the per-user inbox on demand; nothing here is stored."""

    def __init__(
        self,
        session: Session,
        config: Settings | None = None,
        *,
        ledger: MessageLedger | None = None,
        tracker: ReadTracker | None = None,
    ) -> None:
        self.session = session
        config = config or settings
        self.ledger = ledger or MessageLedger(session, config)
        self.tracker = tracker or ReadTracker(session, config)

    def list_conversations(self, user_id: str) -> list[ConversationSummary]:
        """Return the user's threads, most recently active first.

        Threads whose messages were all deleted sort last.
        """
        threads = self.session.execute(
            select(DMThread).where(or_(DMThread.a_id == user_id, DMThread.b_id == user_id))
        ).scalars().all()

        summaries = [
            ConversationSummary(
                thread_id=thread.thread_id,
                other_user_id=thread.b_id if thread.a_id == user_id else thread.a_id,
                last_message=self.ledger.latest(thread.thread_id),
                unread_count=self.tracker.unread_count(thread.thread_id, user_id),
            )
            for thread in threads
        ]
        summaries.sort(key=_recency_key, reverse=True)
        return summaries
