"""Storage-layer failures surfaced to request handlers."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when a persistence operation fails."""


@contextmanager
def storage_operation(db: Session, action: str) -> Iterator[None]:
    """Roll back and re-raise SQLAlchemy faults as ``StorageError``."""

    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("storage.operation_failed action=%s", action)
        raise StorageError(f"Failed to {action}") from exc
