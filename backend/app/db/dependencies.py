"""FastAPI dependencies for database access."""

from collections.abc import Iterator

from sqlalchemy.orm import Session

from app.db.session import SessionLocal


def get_db() -> Iterator[Session]:
    """Yield a request-scoped session and close it afterwards."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
