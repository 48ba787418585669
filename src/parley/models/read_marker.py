"""Per-user read position within a thread."""

from sqlalchemy import BigInteger, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from parley.db.session import Base


class ReadMarker(Base):
    """Timestamp (ms) up to which a user has read a thread."""

    __tablename__ = "dm_read_marker"

    thread_id: Mapped[str] = mapped_column(
        String(129),
        ForeignKey("dm_thread.thread_id"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("user_account.id"),
        primary_key=True,
    )
    last_read_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
