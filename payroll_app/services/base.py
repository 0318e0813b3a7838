import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from payroll_app.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)


def commit_or_raise(db: Session, action: str, **context) -> None:
    """Commit the current transaction, surfacing store failures as PersistenceError."""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Commit failed during {action}: {e}", extra=context)
        raise PersistenceError(f"Failed to {action}", details=context) from e
