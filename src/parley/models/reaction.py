"""Models capturing emoji reactions on direct messages."""

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from parley.db.session import Base


class MessageReaction(Base):
    """One user's reaction with one emoji on one message."""

    __tablename__ = "dm_reaction"
    __table_args__ = (
        Index("ix_dm_reaction_message_id", "message_id"),
    )

    # Composite primary key: at most one row per (message, emoji, user).
    message_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("dm_message.id", ondelete="CASCADE"),
        primary_key=True,
    )
    emoji: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("user_account.id"),
        primary_key=True,
    )
