from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.errors import BookingEngineError, PersistenceError

logger = logging.getLogger(__name__)


@contextmanager
def atomic(
    db: Session,
    action: str,
    log: logging.Logger | logging.LoggerAdapter | None = None,
    **context,
) -> Iterator[Session]:
    """Commit everything done inside the block or nothing at all."""
    log = log or logger
    try:
        yield db
        db.commit()
    except BookingEngineError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        log.exception("Database failure during %s", action, extra={"action": action, **context})
        raise PersistenceError(f"Could not complete {action.replace('_', ' ')}") from exc
    except Exception:
        db.rollback()
        raise
