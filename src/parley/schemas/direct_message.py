"""Direct message-related Pydantic schemas."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from parley.core.body import EncryptedBody, MessageBody, PlaintextBody


class EncryptedEnvelope(BaseModel):
    """Wire shape of an encrypted body: ``{"encrypted": true, "cipherText", "iv"}``."""

    encrypted: Literal[True]
    cipher_text: str = Field(..., alias="cipherText", min_length=1)
    iv: str = Field(..., min_length=1)

    model_config = ConfigDict(populate_by_name=True)

    def to_body(self) -> EncryptedBody:
        return EncryptedBody(cipher_text=self.cipher_text, iv=self.iv)


def _to_message_body(body: str | EncryptedEnvelope) -> MessageBody:
    if isinstance(body, EncryptedEnvelope):
        return body.to_body()
    return PlaintextBody(text=body)


class Attachment(BaseModel):
    """Descriptor of an uploaded file referenced by a message."""

    name: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(..., min_length=3, max_length=255)
    size: int = Field(..., ge=0)
    url: str = Field(..., min_length=1, max_length=2048)


class DirectMessageCreate(BaseModel):
    """Schema for sending a direct message."""

    body: str | EncryptedEnvelope = Field(
        default="",
        description="Plaintext string or an encrypted envelope object",
    )
    attachments: list[Attachment] = Field(default_factory=list)
    reply_to_id: str | None = Field(None, description="Message id this message replies to")

    def message_body(self) -> MessageBody:
        return _to_message_body(self.body)


class DirectMessageEdit(BaseModel):
    """Schema for replacing the body of one's own message."""

    body: str | EncryptedEnvelope

    def message_body(self) -> MessageBody:
        return _to_message_body(self.body)


class ReactionToggle(BaseModel):
    """Schema for toggling an emoji reaction."""

    emoji: str = Field(..., min_length=1, max_length=64)


class ReadMarkRequest(BaseModel):
    """Optional explicit read position (ms since epoch)."""

    at: int | None = Field(None, ge=0)


class DirectMessageResponse(BaseModel):
    """Schema for a message returned by the API."""

    id: str
    thread_id: str
    sender_id: str
    body: str | dict[str, Any]
    attachments: list[dict[str, Any]]
    reply_to_id: str | None
    reply_to_deleted: bool = False
    created_at: int
    seq: int
    edited_at: int | None
    reactions: dict[str, list[str]] = Field(default_factory=dict)


class ConversationResponse(BaseModel):
    """One row of the inbox."""

    thread_id: str
    other_user_id: str
    last_message: DirectMessageResponse | None
    unread_count: int
