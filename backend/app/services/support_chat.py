"""Support chat turn handling: validate, persist, generate, persist, respond."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from time import perf_counter

from sqlalchemy.orm import Session

from app.models.message import SENDER_AI, SENDER_USER
from app.services.completion import (
    AllModelsExhausted,
    CompletionGateway,
    ProviderAuthError,
    ProviderRateLimitError,
)
from app.services.conversation_locks import ConversationLockRegistry, conversation_locks
from app.services.conversations import conversation_exists, create_conversation
from app.services.messages import DEFAULT_HISTORY_LIMIT, HistoryEntry, append_message, recent_history

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1000

SUPPORT_AGENT_PROMPT = """You are "Alex", a friendly and helpful customer support agent for QuickShop e-commerce store.

IMPORTANT GUIDELINES:
1. Be conversational and natural - don't sound like a robot
2. Greet customers warmly when they say hello
3. Only share store information when asked
4. Keep responses concise but helpful

STORE INFORMATION (share when relevant):
- **Returns**: 30-day return policy. Items must be unused with original tags.
- **Shipping**: Free shipping on orders over $50. Standard: 5-7 business days.
- **Support Hours**: Monday-Friday, 9:00 AM - 6:00 PM EST
- **Contact**: support@quickshop.com or call 1-800-QUICK-SHOP
- **Payment**: We accept Visa, Mastercard, Amex, PayPal, Apple Pay

Be helpful, friendly, and professional."""

_ROLE_BY_SENDER = {SENDER_USER: "user", SENDER_AI: "assistant"}


class ChatValidationError(ValueError):
    """Raised when an inbound chat message is rejected before any I/O."""

    def __init__(self, reason: str, message: str, *, length: int | None = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.length = length


class GatewayAuthError(RuntimeError):
    """Every candidate failed and the provider rejected our credentials."""


class GatewayRateLimited(RuntimeError):
    """Every candidate failed and the provider is throttling us."""


@dataclass(frozen=True, slots=True)
class ChatTurnResult:
    reply: str
    conversation_id: str
    model_used: str
    is_new_conversation: bool
    timestamp: datetime


def validate_user_message(message: object, *, max_length: int = MAX_MESSAGE_LENGTH) -> str:
    """Return the trimmed message or raise ``ChatValidationError``."""

    if not isinstance(message, str):
        raise ChatValidationError("missing", "Message is required and must be a string")
    trimmed = message.strip()
    if not trimmed:
        raise ChatValidationError("empty", "Message cannot be empty")
    if len(trimmed) > max_length:
        raise ChatValidationError(
            "tooLong",
            f"Message too long (maximum {max_length} characters)",
            length=len(trimmed),
        )
    return trimmed


def build_chat_messages(history: list[HistoryEntry], user_text: str) -> list[dict[str, str]]:
    """System persona, prior turns in chronological order, then the current user turn."""

    messages = [{"role": "system", "content": SUPPORT_AGENT_PROMPT}]
    for entry in history:
        role = _ROLE_BY_SENDER.get(entry.sender)
        if role is None:
            continue
        messages.append({"role": role, "content": entry.text})
    messages.append({"role": "user", "content": user_text})
    return messages


def run_support_chat_turn(
    db: Session,
    *,
    message: object,
    conversation_id: str | None,
    gateway: CompletionGateway,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
    max_length: int = MAX_MESSAGE_LENGTH,
    locks: ConversationLockRegistry = conversation_locks,
) -> ChatTurnResult:
    """Handle one chat request end to end."""

    user_text = validate_user_message(message, max_length=max_length)
    requested_id = conversation_id.strip() if isinstance(conversation_id, str) else ""

    if requested_id:
        with locks.hold(requested_id):
            if conversation_exists(db, requested_id):
                return _complete_turn(
                    db,
                    requested_id,
                    user_text,
                    gateway=gateway,
                    history_limit=history_limit,
                    is_new=False,
                )
        logger.info("support_chat.unknown_conversation requested_id=%s", requested_id)

    new_id = create_conversation(db).id
    with locks.hold(new_id):
        return _complete_turn(
            db,
            new_id,
            user_text,
            gateway=gateway,
            history_limit=history_limit,
            is_new=True,
        )


def _complete_turn(
    db: Session,
    conversation_id: str,
    user_text: str,
    *,
    gateway: CompletionGateway,
    history_limit: int,
    is_new: bool,
) -> ChatTurnResult:
    started = perf_counter()
    user_message = append_message(db, conversation_id, SENDER_USER, user_text)
    history = recent_history(db, conversation_id, history_limit, before_id=user_message.id)
    messages = build_chat_messages(history, user_text)

    try:
        completion = gateway.generate(messages)
    except AllModelsExhausted as exc:
        logger.error(
            "support_chat.generation_failed conversation_id=%s attempts=%d last_error=%s",
            conversation_id,
            len(exc.failures),
            exc.last_error,
        )
        if isinstance(exc.last_error, ProviderAuthError):
            raise GatewayAuthError(str(exc.last_error)) from exc
        if isinstance(exc.last_error, ProviderRateLimitError):
            raise GatewayRateLimited(str(exc.last_error)) from exc
        raise

    append_message(db, conversation_id, SENDER_AI, completion.reply_text)
    logger.info(
        "support_chat.turn_completed conversation_id=%s new=%s model=%s history=%d total_ms=%.2f",
        conversation_id,
        is_new,
        completion.model_used,
        len(history),
        (perf_counter() - started) * 1000.0,
    )
    return ChatTurnResult(
        reply=completion.reply_text,
        conversation_id=conversation_id,
        model_used=completion.model_used,
        is_new_conversation=is_new,
        timestamp=datetime.now(timezone.utc),
    )
