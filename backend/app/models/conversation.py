"""Conversation ORM model."""

import uuid

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, CreatedAtMixin


def new_conversation_id() -> str:
    return str(uuid.uuid4())


class Conversation(Base, CreatedAtMixin):
    """Support chat thread."""

    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_conversation_id)

    messages: Mapped[list["Message"]] = relationship(  # noqa: F821
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
