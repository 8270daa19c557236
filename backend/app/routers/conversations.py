"""Conversation lifecycle and history routes."""

from fastapi import APIRouter, Depends, HTTPException, Path
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.db.dependencies import get_db
from app.db.errors import StorageError
from app.schemas.conversation import (
    ConversationCreated,
    ConversationDeleted,
    ConversationExport,
    ConversationHistory,
    ConversationListItem,
    ConversationsListResponse,
)
from app.schemas.message import MessageRead
from app.services.conversations import (
    ConversationNotFoundError,
    create_conversation,
    delete_conversation,
    get_conversation,
    list_conversations,
)
from app.services.messages import list_messages

router = APIRouter(prefix="/api")


@router.post("/conversation", response_model=ConversationCreated)
def post_conversation(db: Session = Depends(get_db)) -> ConversationCreated:
    """Start a new, empty conversation."""

    try:
        conversation = create_conversation(db)
    except StorageError as exc:
        raise HTTPException(status_code=500, detail="Failed to create conversation") from exc
    return ConversationCreated(conversation_id=conversation.id)


@router.get("/conversation/{conversation_id}", response_model=ConversationHistory)
def get_conversation_history(
    conversation_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> ConversationHistory:
    """Return the full chronological history for a conversation."""

    export = _load_export(db, conversation_id, action="retrieve conversation history")
    return ConversationHistory(**export.model_dump())


@router.get("/conversation/{conversation_id}/export")
def export_conversation(
    conversation_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> Response:
    """Return the conversation history as a downloadable JSON file."""

    export = _load_export(db, conversation_id, action="export conversation")
    return Response(
        content=export.model_dump_json(by_alias=True, indent=2),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="conversation-{conversation_id}.json"'},
    )


@router.delete("/conversation/{conversation_id}", response_model=ConversationDeleted)
def remove_conversation(
    conversation_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> ConversationDeleted:
    """Delete a conversation and, through the cascade, all of its messages."""

    try:
        delete_conversation(db, conversation_id)
    except ConversationNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Conversation not found") from exc
    except StorageError as exc:
        raise HTTPException(status_code=500, detail="Failed to delete conversation") from exc
    return ConversationDeleted(conversation_id=conversation_id)


@router.get("/conversations", response_model=ConversationsListResponse)
def get_conversations(db: Session = Depends(get_db)) -> ConversationsListResponse:
    """List every conversation, newest first, with message counts."""

    try:
        summaries = list_conversations(db)
    except StorageError as exc:
        raise HTTPException(status_code=500, detail="Failed to list conversations") from exc
    return ConversationsListResponse(
        conversations=[
            ConversationListItem(id=item.id, created_at=item.created_at, message_count=item.message_count)
            for item in summaries
        ]
    )


def _load_export(db: Session, conversation_id: str, *, action: str) -> ConversationExport:
    try:
        conversation = get_conversation(db, conversation_id)
        messages = list_messages(db, conversation_id)
    except ConversationNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Conversation not found") from exc
    except StorageError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to {action}") from exc
    return ConversationExport(
        conversation_id=conversation.id,
        created_at=conversation.created_at,
        message_count=len(messages),
        messages=[MessageRead.model_validate(message) for message in messages],
    )
