"""Ordered per-thread ledger of direct messages."""

from __future__ import annotations

import base64
import binascii
import logging
import zlib
from collections.abc import Mapping, Sequence
from threading import Lock
from typing import Any, Final

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from parley.core.body import EncryptedBody, MessageBody, PlaintextBody
from parley.core.errors import Forbidden, InvalidInput, NotFound
from parley.core.settings import Settings, settings
from parley.db.time import now_ms
from parley.models import DirectMessage, DMThread, MessageReaction
from parley.services.crypto import IV_BYTES
from parley.services.thread_key import derive_thread_id, split_thread_id
from parley.utils.ids import new_id
from parley.utils.text import require_utf8

logger = logging.getLogger(__name__)

# AES-GCM output always carries a 16-byte tag.
_MIN_CIPHERTEXT_BYTES: Final[int] = 16
_LOCK_STRIPES: Final[int] = 64
_THREAD_LOCKS: Final[list[Lock]] = [Lock() for _ in range(_LOCK_STRIPES)]


def _thread_lock(thread_id: str) -> Lock:
    """Return the in-process lock guarding appends to ``thread_id``."""
    return _THREAD_LOCKS[zlib.crc32(thread_id.encode()) % _LOCK_STRIPES]


def _b64_length(byte_count: int) -> int:
    return (byte_count + 2) // 3 * 4


def _decode_b64_field(value: str, name: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as err:
        raise InvalidInput(f"Envelope {name} must be valid base64") from err


class MessageLedger:
    """Append, mutate and list messages of two-party threads.

    Appends to one thread are serialized: a striped in-process lock covers
    callers sharing this process, and ``SELECT ... FOR UPDATE`` on the thread
    row covers other processes on databases that support row locks. The
    transaction commits before the lock is released.
    """

    def __init__(self, session: Session, config: Settings | None = None) -> None:
        self.session = session
        self.settings = config or settings

    # --- Threads ----------------------------------------------------------------------
    def ensure_thread(self, user_a: str, user_b: str) -> DMThread:
        """Return the thread between two users, creating it on first use."""
        thread_id = derive_thread_id(user_a, user_b)
        thread = self.session.get(DMThread, thread_id)
        if thread is not None:
            return thread

        a_id, b_id = split_thread_id(thread_id)
        thread = DMThread(thread_id=thread_id, a_id=a_id, b_id=b_id, last_seq=0, last_created_at=0)
        self.session.add(thread)
        try:
            self.session.commit()
        except IntegrityError:
            # Another request created it first.
            self.session.rollback()
            thread = self.session.get(DMThread, thread_id)
            if thread is None:
                raise
        return thread

    def get_thread(self, thread_id: str) -> DMThread:
        """Return a thread or raise ``NotFound``."""
        split_thread_id(thread_id)
        thread = self.session.get(DMThread, thread_id)
        if thread is None:
            raise NotFound("Thread not found")
        return thread

    def require_participant(self, thread_id: str, user_id: str) -> DMThread:
        """Return the thread if ``user_id`` takes part in it."""
        thread = self.get_thread(thread_id)
        if user_id not in thread.participants:
            raise Forbidden("Not a participant of this thread")
        return thread

    # --- Validation -------------------------------------------------------------------
    @property
    def max_ciphertext_bytes(self) -> int:
        """Largest AES-GCM output a maximum-length UTF-8 body can produce."""
        return 4 * self.settings.dm_max_body_chars + _MIN_CIPHERTEXT_BYTES

    def _validate_body(self, body: MessageBody, *, has_attachments: bool) -> None:
        if isinstance(body, PlaintextBody):
            if len(body.text) > self.settings.dm_max_body_chars:
                raise InvalidInput(
                    f"Message body exceeds {self.settings.dm_max_body_chars} characters"
                )
            require_utf8(body.text, "Message body")
            if not body.text.strip() and not has_attachments:
                raise InvalidInput("Message body is empty")
        elif isinstance(body, EncryptedBody):
            if len(_decode_b64_field(body.iv, "iv")) != IV_BYTES:
                raise InvalidInput(f"Envelope iv must be {IV_BYTES} bytes")
            max_bytes = self.max_ciphertext_bytes
            # Reject on the encoded length before decoding.
            if len(body.cipher_text) > _b64_length(max_bytes):
                raise InvalidInput("Envelope cipherText is too long")
            cipher_bytes = _decode_b64_field(body.cipher_text, "cipherText")
            if len(cipher_bytes) < _MIN_CIPHERTEXT_BYTES:
                raise InvalidInput("Envelope cipherText is too short")
            if len(cipher_bytes) > max_bytes:
                raise InvalidInput("Envelope cipherText is too long")
        else:
            raise InvalidInput("Unsupported message body")

    def validate_message(
        self,
        body: MessageBody,
        attachments: Sequence[Mapping[str, Any]] | None = None,
    ) -> list[dict[str, Any]]:
        """Check a body and its attachments without touching the database.

        Returns the cleaned attachment list.

        Raises:
            InvalidInput: For empty, oversized or non-UTF-8 bodies, bad
                envelopes, or bad attachments.
        """
        cleaned_attachments = self._validate_attachments(attachments)
        self._validate_body(body, has_attachments=bool(cleaned_attachments))
        return cleaned_attachments

    def _validate_attachments(
        self,
        attachments: Sequence[Mapping[str, Any]] | None,
    ) -> list[dict[str, Any]]:
        if not attachments:
            return []
        if len(attachments) > self.settings.dm_max_attachments:
            raise InvalidInput(f"At most {self.settings.dm_max_attachments} attachments allowed")

        cleaned: list[dict[str, Any]] = []
        for attachment in attachments:
            name = attachment.get("name")
            mime_type = attachment.get("mime_type")
            size = attachment.get("size")
            url = attachment.get("url")
            if not isinstance(name, str) or not name:
                raise InvalidInput("Attachment name is required")
            if not isinstance(mime_type, str) or "/" not in mime_type:
                raise InvalidInput("Attachment mime_type is invalid")
            if isinstance(size, bool) or not isinstance(size, int) or size < 0:
                raise InvalidInput("Attachment size must be a non-negative integer")
            if size > self.settings.dm_max_attachment_bytes:
                raise InvalidInput("Attachment is too large")
            if not isinstance(url, str) or not url:
                raise InvalidInput("Attachment url is required")
            require_utf8(name, "Attachment name")
            require_utf8(mime_type, "Attachment mime_type")
            require_utf8(url, "Attachment url")
            cleaned.append({"name": name, "mime_type": mime_type, "size": size, "url": url})
        return cleaned

    # --- Writes -----------------------------------------------------------------------
    def append(
        self,
        thread_id: str,
        sender_id: str,
        body: MessageBody,
        attachments: Sequence[Mapping[str, Any]] | None = None,
        reply_to_id: str | None = None,
    ) -> DirectMessage:
        """Append a message and return it.

        ``created_at`` is strictly greater than the previous message's in the
        same thread even when the wall clock has not advanced, and ``seq``
        numbers messages 1, 2, 3... per thread.

        Raises:
            NotFound: If the thread does not exist.
            Forbidden: If the sender is not a participant.
            InvalidInput: For empty, oversized or non-UTF-8 bodies, bad
                envelopes, bad attachments, or a ``reply_to_id`` outside
                this thread.
        """
        cleaned_attachments = self.validate_message(body, attachments)

        with _thread_lock(thread_id):
            try:
                thread = self.session.execute(
                    select(DMThread)
                    .where(DMThread.thread_id == thread_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one_or_none()
                if thread is None:
                    raise NotFound("Thread not found")
                if sender_id not in thread.participants:
                    raise Forbidden("Not a participant of this thread")

                if reply_to_id is not None:
                    parent = self.session.get(DirectMessage, reply_to_id)
                    if parent is None or parent.thread_id != thread_id:
                        raise InvalidInput("reply_to_id must reference a message in this thread")

                seq = thread.last_seq + 1
                created_at = max(now_ms(), thread.last_created_at + 1)

                message = DirectMessage(
                    id=new_id("dm"),
                    thread_id=thread_id,
                    sender_id=sender_id,
                    attachments=cleaned_attachments,
                    reply_to_id=reply_to_id,
                    created_at=created_at,
                    seq=seq,
                    edited_at=None,
                )
                message.body = body
                thread.last_seq = seq
                thread.last_created_at = created_at

                self.session.add(message)
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise
        return message

    def _owned_message(self, message_id: str, requester_id: str) -> DirectMessage:
        message = self.session.get(DirectMessage, message_id, populate_existing=True)
        if message is None:
            raise NotFound("Message not found")
        if message.sender_id != requester_id:
            raise Forbidden("Only the sender may change this message")
        return message

    def edit(self, message_id: str, requester_id: str, new_body: MessageBody) -> DirectMessage:
        """Replace the body of the requester's own message."""
        message = self._owned_message(message_id, requester_id)
        self._validate_body(new_body, has_attachments=bool(message.attachments))

        message.body = new_body
        message.edited_at = max(now_ms(), message.created_at)
        try:
            self.session.commit()
        except StaleDataError as err:
            self.session.rollback()
            logger.info("Edit of message %s lost a race with another writer", message_id)
            raise NotFound("Message not found") from err
        except Exception:
            self.session.rollback()
            raise
        return message

    def delete(self, message_id: str, requester_id: str) -> None:
        """Hard-delete the requester's own message and its reactions."""
        message = self._owned_message(message_id, requester_id)
        try:
            self.session.execute(
                delete(MessageReaction).where(MessageReaction.message_id == message.id)
            )
            self.session.delete(message)
            self.session.commit()
        except StaleDataError as err:
            self.session.rollback()
            logger.info("Delete of message %s lost a race with another writer", message_id)
            raise NotFound("Message not found") from err
        except Exception:
            self.session.rollback()
            raise

    # --- Reads ------------------------------------------------------------------------
    def get(self, message_id: str) -> DirectMessage | None:
        return self.session.get(DirectMessage, message_id)

    def list_by_thread(
        self,
        thread_id: str,
        *,
        after_seq: int | None = None,
        limit: int | None = None,
    ) -> list[DirectMessage]:
        """Return messages in send order, optionally resuming after ``after_seq``."""
        stmt = select(DirectMessage).where(DirectMessage.thread_id == thread_id)
        if after_seq is not None:
            stmt = stmt.where(DirectMessage.seq > after_seq)
        stmt = stmt.order_by(DirectMessage.created_at.asc(), DirectMessage.seq.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def latest(self, thread_id: str) -> DirectMessage | None:
        """Return the most recent message of a thread, if any."""
        return self.session.execute(
            select(DirectMessage)
            .where(DirectMessage.thread_id == thread_id)
            .order_by(DirectMessage.created_at.desc(), DirectMessage.seq.desc())
            .limit(1)
        ).scalar_one_or_none()
