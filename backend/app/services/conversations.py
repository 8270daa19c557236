"""Conversation store services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from app.db.errors import storage_operation
from app.models.conversation import Conversation
from app.models.message import Message


class ConversationNotFoundError(LookupError):
    """Raised when a conversation id does not exist."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    id: str
    created_at: datetime
    message_count: int


def create_conversation(db: Session) -> Conversation:
    """Insert a new conversation with a generated id."""

    with storage_operation(db, "create conversation"):
        conversation = Conversation()
        db.add(conversation)
        db.commit()
        db.refresh(conversation)
    return conversation


def conversation_exists(db: Session, conversation_id: str) -> bool:
    with storage_operation(db, "check conversation"):
        found = db.scalar(select(Conversation.id).where(Conversation.id == conversation_id))
    return found is not None


def get_conversation(db: Session, conversation_id: str) -> Conversation:
    """Return the stored conversation or raise ``ConversationNotFoundError``."""

    with storage_operation(db, "load conversation"):
        conversation = db.get(Conversation, conversation_id)
    if conversation is None:
        raise ConversationNotFoundError(conversation_id)
    return conversation


def delete_conversation(db: Session, conversation_id: str) -> None:
    """Delete a conversation; its messages go with it through the cascading foreign key."""

    with storage_operation(db, "delete conversation"):
        result = db.execute(delete(Conversation).where(Conversation.id == conversation_id))
        if result.rowcount == 0:
            db.rollback()
            raise ConversationNotFoundError(conversation_id)
        db.commit()


def list_conversations(db: Session) -> list[ConversationSummary]:
    """Return all conversations newest first with their message counts."""

    message_counts = (
        select(
            Message.conversation_id.label("conversation_id"),
            func.count(Message.id).label("message_count"),
        )
        .group_by(Message.conversation_id)
        .subquery()
    )
    stmt = (
        select(
            Conversation.id,
            Conversation.created_at,
            func.coalesce(message_counts.c.message_count, 0).label("message_count"),
        )
        .outerjoin(message_counts, message_counts.c.conversation_id == Conversation.id)
        .order_by(Conversation.created_at.desc(), Conversation.id.desc())
    )
    with storage_operation(db, "list conversations"):
        rows = db.execute(stmt).all()
    return [
        ConversationSummary(
            id=row.id,
            created_at=row.created_at,
            message_count=int(row.message_count or 0),
        )
        for row in rows
    ]
