"""Schemas for the support chat endpoint."""

from datetime import datetime
from typing import Any

from app.schemas.common import CamelModel


class ChatMessageRequest(CamelModel):
    """Inbound chat message.

    Fields stay loosely typed so the handler, not request parsing, decides how
    malformed input is reported.
    """

    message: Any = None
    conversation_id: Any = None


class ChatMessageResponse(CamelModel):
    success: bool = True
    reply: str
    conversation_id: str
    model_used: str
    is_new_conversation: bool
    timestamp: datetime


class ChatFailureResponse(CamelModel):
    """Error payload that still carries a conversational fallback reply."""

    success: bool = False
    error: str
    reply: str
    fallback: bool = True
    code: str
    reason: str | None = None
    length: int | None = None


class HealthResponse(CamelModel):
    status: str
    timestamp: datetime
    service: str
    model: str
