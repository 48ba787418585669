"""Per-user read markers and unread counts."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from parley.core.errors import Forbidden, InvalidInput, NotFound
from parley.core.settings import Settings, settings
from parley.models import DirectMessage, DMThread, ReadMarker


class ReadTracker:
    """Own the ``(thread, user) -> last_read_at`` markers.

    Two policies come from settings: ``dm_monotonic_read_markers`` keeps a
    marker from moving backwards, and ``dm_unread_excludes_own`` leaves the
    reader's own messages out of the unread count.
    """

    def __init__(self, session: Session, config: Settings | None = None) -> None:
        self.session = session
        self.settings = config or settings

    def _participant_thread(self, thread_id: str, user_id: str) -> DMThread:
        thread = self.session.get(DMThread, thread_id, populate_existing=True)
        if thread is None:
            raise NotFound("Thread not found")
        if user_id not in thread.participants:
            raise Forbidden("Not a participant of this thread")
        return thread

    def last_read_at(self, thread_id: str, user_id: str) -> int:
        """Return the stored marker, or 0 when the user never read the thread."""
        marker = self.session.get(ReadMarker, (thread_id, user_id))
        return int(marker.last_read_at) if marker is not None else 0

    def mark_read(self, thread_id: str, user_id: str, at: int | None = None) -> int:
        """Record that ``user_id`` has read ``thread_id`` up to ``at``.

        Without ``at`` the marker covers every message currently in the thread,
        so the unread count is zero immediately afterwards. An explicit ``at``
        is capped at the newest message, so a timestamp from the future cannot
        hide messages that arrive later.

        Returns:
            The marker value now stored.
        """
        if at is not None and at < 0:
            raise InvalidInput("Read timestamp must not be negative")
        thread = self._participant_thread(thread_id, user_id)
        # Later appends always get a larger created_at than this.
        newest = int(thread.last_created_at)
        at = newest if at is None else min(at, newest)

        for attempt in range(2):
            marker = self.session.get(ReadMarker, (thread_id, user_id), populate_existing=True)
            if marker is None:
                marker = ReadMarker(thread_id=thread_id, user_id=user_id, last_read_at=at)
                self.session.add(marker)
            elif self.settings.dm_monotonic_read_markers:
                marker.last_read_at = max(int(marker.last_read_at), at)
            else:
                marker.last_read_at = at
            try:
                self.session.commit()
            except IntegrityError:
                # A concurrent first read inserted the row; retry as an update.
                self.session.rollback()
                if attempt:
                    raise
                continue
            except Exception:
                self.session.rollback()
                raise
            return int(marker.last_read_at)
        raise RuntimeError("unreachable")  # pragma: no cover

    def unread_count(self, thread_id: str, user_id: str) -> int:
        """Count messages newer than the user's marker."""
        stmt = (
            select(func.count())
            .select_from(DirectMessage)
            .where(
                DirectMessage.thread_id == thread_id,
                DirectMessage.created_at > self.last_read_at(thread_id, user_id),
            )
        )
        if self.settings.dm_unread_excludes_own:
            stmt = stmt.where(DirectMessage.sender_id != user_id)
        return int(self.session.execute(stmt).scalar() or 0)
