"""ORM models package exports."""

from app.models.conversation import Conversation
from app.models.message import Message

__all__ = ["Conversation", "Message"]
