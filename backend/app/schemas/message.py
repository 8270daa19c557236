"""Message response schemas."""

from datetime import datetime
from typing import Literal

from app.schemas.common import CamelModel


class MessageRead(CamelModel):
    """Serialized message."""

    id: int
    sender: Literal["user", "ai"]
    text: str
    created_at: datetime
