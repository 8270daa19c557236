"""Conversation request/response schemas."""

from datetime import datetime

from app.schemas.common import CamelModel
from app.schemas.message import MessageRead


class ConversationCreated(CamelModel):
    success: bool = True
    conversation_id: str
    message: str = "New conversation started"


class ConversationExport(CamelModel):
    """Full ordered history of one conversation."""

    conversation_id: str
    created_at: datetime
    message_count: int
    messages: list[MessageRead]


class ConversationHistory(ConversationExport):
    success: bool = True


class ConversationDeleted(CamelModel):
    success: bool = True
    conversation_id: str


class ConversationListItem(CamelModel):
    id: str
    created_at: datetime
    message_count: int


class ConversationsListResponse(CamelModel):
    success: bool = True
    conversations: list[ConversationListItem]
