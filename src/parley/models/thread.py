"""Models describing two-party direct message threads."""

from sqlalchemy import BigInteger, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from parley.db.session import Base


class DMThread(Base):
    """Conversation between exactly two users.

    The primary key is the canonical thread id; participants are stored sorted
    so ``a_id < b_id``. ``last_seq`` and ``last_created_at`` are bumped under a
    row lock on every append to keep a per-thread total order.
    """

    __tablename__ = "dm_thread"

    thread_id: Mapped[str] = mapped_column(String(129), primary_key=True)
    a_id: Mapped[str] = mapped_column(String(64), ForeignKey("user_account.id"), nullable=False, index=True)
    b_id: Mapped[str] = mapped_column(String(64), ForeignKey("user_account.id"), nullable=False, index=True)

    last_seq: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    last_created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    @property
    def participants(self) -> tuple[str, str]:
        return self.a_id, self.b_id
