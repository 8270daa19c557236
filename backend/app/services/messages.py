"""Message store services."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.errors import storage_operation
from app.models.conversation import Conversation
from app.models.message import SENDERS, Message
from app.services.conversations import ConversationNotFoundError

DEFAULT_HISTORY_LIMIT = 6


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    sender: str
    text: str


def append_message(db: Session, conversation_id: str, sender: str, text: str) -> Message:
    """Persist one message for an existing conversation."""

    if sender not in SENDERS:
        raise ValueError(f"Unknown sender: {sender!r}")
    if not text:
        raise ValueError("Message text cannot be empty.")

    with storage_operation(db, "save message"):
        if db.get(Conversation, conversation_id) is None:
            raise ConversationNotFoundError(conversation_id)
        message = Message(conversation_id=conversation_id, sender=sender, text=text)
        db.add(message)
        db.commit()
        db.refresh(message)
    return message


def recent_history(
    db: Session,
    conversation_id: str,
    limit: int = DEFAULT_HISTORY_LIMIT,
    *,
    before_id: int | None = None,
) -> list[HistoryEntry]:
    """Return the latest ``limit`` messages, oldest first.

    ``before_id`` restricts the window to messages stored before that message.
    """

    stmt = select(Message.sender, Message.text).where(Message.conversation_id == conversation_id)
    if before_id is not None:
        stmt = stmt.where(Message.id < before_id)
    stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit)
    with storage_operation(db, "load recent history"):
        rows = db.execute(stmt).all()
    return [HistoryEntry(sender=row.sender, text=row.text) for row in reversed(rows)]


def list_messages(db: Session, conversation_id: str) -> list[Message]:
    """Return messages for a conversation ordered deterministically."""

    stmt = (
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    with storage_operation(db, "load messages"):
        return list(db.scalars(stmt).all())
