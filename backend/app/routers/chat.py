"""Support chat message route."""

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.config import get_settings
from app.db.dependencies import get_db
from app.db.errors import StorageError
from app.schemas.chat import ChatFailureResponse, ChatMessageRequest, ChatMessageResponse
from app.services.completion import AllModelsExhausted, CompletionGateway, get_completion_gateway
from app.services.support_chat import (
    ChatValidationError,
    GatewayAuthError,
    GatewayRateLimited,
    run_support_chat_turn,
)

logger = logging.getLogger(__name__)

FALLBACK_REPLY = (
    "I'm having temporary technical issues. Our return policy is 30 days for items in original condition."
)
GENERIC_ERROR = "Sorry, I encountered an error. Please try again."
MODEL_ISSUE_ERROR = (
    "Service updating. Here is sample response: We have a 30-day return policy for items in original condition."
)

router = APIRouter(prefix="/api")


async def read_chat_request(request: Request) -> ChatMessageRequest:
    """Parse the body leniently; anything that is not a JSON object carries no message."""

    raw = await request.body()
    try:
        decoded = json.loads(raw) if raw.strip() else {}
    except ValueError:
        logger.info("support_chat.unparseable_body bytes=%d", len(raw))
        decoded = {}
    if not isinstance(decoded, dict):
        decoded = {}
    return ChatMessageRequest.model_validate(decoded)


@router.post(
    "/message",
    response_model=ChatMessageResponse,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": ChatMessageRequest.model_json_schema(by_alias=True)}},
        }
    },
    responses={
        400: {"model": ChatFailureResponse},
        401: {"model": ChatFailureResponse},
        429: {"model": ChatFailureResponse},
        500: {"model": ChatFailureResponse},
    },
)
def post_message(
    payload: ChatMessageRequest = Depends(read_chat_request),
    db: Session = Depends(get_db),
    gateway: CompletionGateway = Depends(get_completion_gateway),
):
    """Store the user's message, generate a support reply, and store the reply."""

    settings = get_settings()
    try:
        result = run_support_chat_turn(
            db,
            message=payload.message,
            conversation_id=payload.conversation_id,
            gateway=gateway,
            history_limit=settings.history_limit,
            max_length=settings.max_message_length,
        )
    except Exception as exc:  # noqa: BLE001
        return _failure_response(exc)

    return ChatMessageResponse(
        reply=result.reply,
        conversation_id=result.conversation_id,
        model_used=result.model_used,
        is_new_conversation=result.is_new_conversation,
        timestamp=result.timestamp,
    )


def _failure_response(exc: Exception) -> JSONResponse:
    if isinstance(exc, ChatValidationError):
        status_code, code, error = 400, "validation_error", str(exc)
    elif isinstance(exc, GatewayAuthError):
        status_code, code = 401, "gateway_auth_failed"
        error = "API authentication failed. Please check your Groq API key."
    elif isinstance(exc, GatewayRateLimited):
        status_code, code = 429, "gateway_rate_limited"
        error = "Too many requests. Please try again in a moment."
    elif isinstance(exc, AllModelsExhausted):
        status_code, code = 500, "models_exhausted"
        last_status = getattr(exc.last_error, "status_code", None)
        error = MODEL_ISSUE_ERROR if last_status == 400 else GENERIC_ERROR
    elif isinstance(exc, StorageError):
        status_code, code, error = 500, "storage_error", GENERIC_ERROR
    else:
        logger.exception("support_chat.unexpected_failure")
        status_code, code, error = 500, "internal_error", GENERIC_ERROR

    body = ChatFailureResponse(
        error=error,
        reply=FALLBACK_REPLY,
        code=code,
        reason=getattr(exc, "reason", None) if status_code == 400 else None,
        length=getattr(exc, "length", None) if status_code == 400 else None,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
    )
