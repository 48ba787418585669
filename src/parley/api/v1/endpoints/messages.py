"""Direct message endpoints for the Parley API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from parley.core.errors import DMError
from parley.core.settings import settings
from parley.models import DirectMessage, User
from parley.schemas.direct_message import (
    ConversationResponse,
    DirectMessageCreate,
    DirectMessageEdit,
    DirectMessageResponse,
    ReactionToggle,
    ReadMarkRequest,
)
from parley.services.conversations import ConversationIndex
from parley.services.ledger import MessageLedger
from parley.services.reactions import ReactionAggregator
from parley.services.read_tracker import ReadTracker

from ..dependencies import CurrentUserDep, RateLimiterDep, SessionDep, http_error

router = APIRouter(prefix="/dms", tags=["dms"])


def _serialize_message(
    message: DirectMessage,
    reactions: dict[str, list[str]] | None = None,
    *,
    reply_to_deleted: bool = False,
) -> DirectMessageResponse:
    """Serialize a DirectMessage instance into API payload form."""
    return DirectMessageResponse(
        id=message.id,
        thread_id=message.thread_id,
        sender_id=message.sender_id,
        body=message.body.to_wire(),
        attachments=list(message.attachments or []),
        reply_to_id=message.reply_to_id,
        reply_to_deleted=reply_to_deleted,
        created_at=message.created_at,
        seq=message.seq,
        edited_at=message.edited_at,
        reactions=reactions or {},
    )


def _missing_reply_targets(db: Session, messages: list[DirectMessage]) -> set[str]:
    """Return reply targets that no longer exist."""
    targets = {m.reply_to_id for m in messages if m.reply_to_id is not None}
    if not targets:
        return set()
    existing = set(
        db.execute(select(DirectMessage.id).where(DirectMessage.id.in_(targets))).scalars()
    )
    return targets - existing


@router.get("", response_model=list[ConversationResponse])
def list_conversations(current_user: CurrentUserDep, db: SessionDep) -> list[ConversationResponse]:
    """Return the caller's inbox, most recent thread first."""
    summaries = ConversationIndex(db).list_conversations(current_user.id)
    return [
        ConversationResponse(
            thread_id=summary.thread_id,
            other_user_id=summary.other_user_id,
            last_message=(
                _serialize_message(summary.last_message)
                if summary.last_message is not None
                else None
            ),
            unread_count=summary.unread_count,
        )
        for summary in summaries
    ]


@router.put("/messages/{message_id}", response_model=DirectMessageResponse)
def edit_message(
    message_id: str,
    payload: DirectMessageEdit,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> DirectMessageResponse:
    """Replace the body of one of the caller's messages."""
    try:
        message = MessageLedger(db).edit(message_id, current_user.id, payload.message_body())
    except DMError as err:
        raise http_error(err) from err
    reactions = ReactionAggregator(db).reactions_for([message.id])
    return _serialize_message(message, reactions[message.id])


@router.delete("/messages/{message_id}")
def delete_message(message_id: str, current_user: CurrentUserDep, db: SessionDep) -> dict[str, str]:
    """Delete one of the caller's messages."""
    try:
        MessageLedger(db).delete(message_id, current_user.id)
    except DMError as err:
        raise http_error(err) from err
    return {"status": "deleted"}


@router.post("/messages/{message_id}/reactions")
def toggle_reaction(
    message_id: str,
    payload: ReactionToggle,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, Any]:
    """Add or remove the caller's emoji reaction on a message."""
    aggregator = ReactionAggregator(db)
    try:
        added = aggregator.toggle(message_id, current_user.id, payload.emoji)
    except DMError as err:
        raise http_error(err) from err
    return {"added": added, "reactions": aggregator.reactions_for([message_id])[message_id]}


@router.post("/{other_id}/messages", status_code=status.HTTP_201_CREATED)
def send_message(
    other_id: str,
    payload: DirectMessageCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    limiter: RateLimiterDep,
) -> dict[str, Any]:
    """Send a message to another user, opening the thread on first use."""
    recipient = db.get(User, other_id)
    if recipient is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Recipient not found",
        )

    ledger = MessageLedger(db)
    body = payload.message_body()
    attachments = [attachment.model_dump() for attachment in payload.attachments]
    try:
        # Bad input neither opens a thread nor counts against the limit.
        ledger.validate_message(body, attachments)
        limiter.check(current_user.id)
        thread = ledger.ensure_thread(current_user.id, recipient.id)
        message = ledger.append(
            thread.thread_id,
            current_user.id,
            body,
            attachments=attachments,
            reply_to_id=payload.reply_to_id,
        )
    except DMError as err:
        raise http_error(err) from err

    return {
        "id": message.id,
        "thread_id": message.thread_id,
        "created_at": message.created_at,
        "seq": message.seq,
    }


@router.get("/{thread_id}/messages")
def list_thread_messages(
    thread_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    after_seq: int | None = Query(None, ge=0, description="Resume after this sequence number"),
    limit: int | None = Query(None, ge=1, le=settings.dm_page_size_max),
) -> dict[str, Any]:
    """Return a thread's messages in send order."""
    ledger = MessageLedger(db)
    page_size = limit or settings.dm_page_size_max
    try:
        ledger.require_participant(thread_id, current_user.id)
    except DMError as err:
        raise http_error(err) from err

    messages = ledger.list_by_thread(thread_id, after_seq=after_seq, limit=page_size)
    reactions = ReactionAggregator(db).reactions_for(m.id for m in messages)
    missing = _missing_reply_targets(db, messages)

    return {
        "messages": [
            _serialize_message(
                message,
                reactions[message.id],
                reply_to_deleted=message.reply_to_id in missing,
            )
            for message in messages
        ],
        "next_after_seq": messages[-1].seq if len(messages) == page_size else None,
    }


@router.get("/{thread_id}/unread")
def get_unread(thread_id: str, current_user: CurrentUserDep, db: SessionDep) -> dict[str, Any]:
    """Return the caller's unread count for a thread."""
    tracker = ReadTracker(db)
    try:
        MessageLedger(db).require_participant(thread_id, current_user.id)
    except DMError as err:
        raise http_error(err) from err
    return {
        "thread_id": thread_id,
        "unread_count": tracker.unread_count(thread_id, current_user.id),
        "last_read_at": tracker.last_read_at(thread_id, current_user.id),
    }


@router.put("/{thread_id}/read")
def mark_thread_read(
    thread_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    payload: ReadMarkRequest | None = None,
) -> dict[str, Any]:
    """Move the caller's read marker for a thread."""
    at = payload.at if payload is not None else None
    try:
        last_read_at = ReadTracker(db).mark_read(thread_id, current_user.id, at)
    except DMError as err:
        raise http_error(err) from err
    return {"thread_id": thread_id, "last_read_at": last_read_at}
