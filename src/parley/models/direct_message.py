"""Models describing direct messages between users."""

from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from parley.core.body import (
    BODY_KIND_ENCRYPTED,
    BODY_KIND_PLAINTEXT,
    EncryptedBody,
    MessageBody,
    PlaintextBody,
)
from parley.db.session import Base


class DirectMessage(Base):
    """Message appended to a thread.

    The body is either plaintext (``content``) or an envelope the server cannot
    read (``cipher_text`` and ``iv``); ``body_kind`` says which. ``version``
    is SQLAlchemy's optimistic lock so an edit racing a delete fails instead
    of resurrecting the row.
    """

    __tablename__ = "dm_message"
    __table_args__ = (
        UniqueConstraint("thread_id", "seq", name="uq_dm_message_thread_seq"),
        Index("ix_dm_message_thread_created", "thread_id", "created_at"),
        CheckConstraint(
            f"body_kind IN ('{BODY_KIND_PLAINTEXT}', '{BODY_KIND_ENCRYPTED}')",
            name="ck_dm_message_body_kind",
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    thread_id: Mapped[str] = mapped_column(
        String(129),
        ForeignKey("dm_thread.thread_id"),
        nullable=False,
    )
    sender_id: Mapped[str] = mapped_column(String(64), ForeignKey("user_account.id"), nullable=False)

    body_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    cipher_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    iv: Mapped[str | None] = mapped_column(String(64), nullable=True)

    attachments: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    # Not a foreign key: replies keep pointing at deleted messages.
    reply_to_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)
    edited_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def body(self) -> MessageBody:
        """Return the body as its tagged variant."""
        if self.body_kind == BODY_KIND_ENCRYPTED:
            return EncryptedBody(cipher_text=self.cipher_text or "", iv=self.iv or "")
        return PlaintextBody(text=self.content or "")

    @body.setter
    def body(self, value: MessageBody) -> None:
        self.body_kind = value.kind
        if isinstance(value, EncryptedBody):
            self.content = None
            self.cipher_text = value.cipher_text
            self.iv = value.iv
        else:
            self.content = value.text
            self.cipher_text = None
            self.iv = None

    @property
    def order_key(self) -> tuple[int, int]:
        """Total order within a thread."""
        return self.created_at, self.seq
