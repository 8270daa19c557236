"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.config import get_settings
from app.db.base import Base
from app.db.session import engine
from app.routers import chat, conversations
from app.schemas.chat import HealthResponse
from app.services.completion import CompletionGateway, get_completion_gateway

logger = logging.getLogger(__name__)


def _prepare_storage() -> None:
    """Create missing tables when configured and prime the connection pool."""

    settings = get_settings()
    try:
        if settings.auto_create_schema:
            Base.metadata.create_all(engine)
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Storage warm-up failed; continuing without startup pre-warm.")


@asynccontextmanager
async def lifespan(_: FastAPI):
    _prepare_storage()
    logger.info(
        "app.started service=%s candidate_models=%s",
        get_settings().app_name,
        ",".join(get_settings().candidate_models),
    )
    yield
    engine.dispose()


app = FastAPI(title=get_settings().app_name, version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat.router, tags=["chat"])
app.include_router(conversations.router, tags=["conversations"])


@app.get("/health", response_model=HealthResponse)
def health(gateway: CompletionGateway = Depends(get_completion_gateway)) -> HealthResponse:
    """Simple health check endpoint."""

    settings = get_settings()
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        service=settings.app_name,
        model=gateway.primary_model,
    )
