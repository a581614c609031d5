"""
Database utility functions with retry logic.
"""
import time
from typing import TypeVar, Callable
from functools import wraps

from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from roadside.core.logging import logger


T = TypeVar("T")


class DatabaseOperationError(Exception):
    """Exception raised when a database operation fails after all retries."""

    def __init__(self, message: str, original_error: Exception = None):
        self.message = message
        self.original_error = original_error
        super().__init__(message)


def _find_session(args, kwargs) -> Session:
    db = kwargs.get("db")
    if db is not None:
        return db
    for arg in args:
        if isinstance(arg, Session):
            return arg
        # Bound methods of store/directory objects carry the session on self
        db = getattr(arg, "db", None)
        if isinstance(db, Session):
            return db
    return None


def with_db_retry(
    max_retries: int = 3,
    retry_delay: float = 0.5,
    exponential_backoff: bool = True,
    rollback_on_error: bool = True,
):
    """
    Decorator for database operations with automatic retry logic.

    Use ``max_retries=0`` for writes inside a larger transaction: a transient
    failure is then surfaced as ``DatabaseOperationError`` straight away
    instead of retrying against a session that has already lost its work.

    Args:
        max_retries: Maximum number of retry attempts
        retry_delay: Initial delay between retries in seconds
        exponential_backoff: Whether to use exponential backoff
        rollback_on_error: Whether to rollback the session on error
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            last_error = None
            delay = retry_delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except OperationalError as e:
                    last_error = e

                    if rollback_on_error:
                        db = _find_session(args, kwargs)
                        if db is not None:
                            try:
                                db.rollback()
                            except SQLAlchemyError as rollback_error:
                                logger.warning(f"Rollback after failed operation also failed: {rollback_error}")

                    if attempt < max_retries:
                        logger.warning(
                            f"Database operation failed (attempt {attempt + 1}/{max_retries + 1}): {e}. "
                            f"Retrying in {delay:.1f}s..."
                        )
                        time.sleep(delay)
                        if exponential_backoff:
                            delay *= 2
                    else:
                        logger.error(
                            f"Database operation failed after {max_retries + 1} attempts: {e}"
                        )
                        raise DatabaseOperationError(
                            f"Database operation failed after {max_retries + 1} attempts",
                            original_error=e,
                        )
                except SQLAlchemyError as e:
                    # Non-retryable error
                    logger.error(f"Non-retryable database error in {func.__name__}: {e}")
                    raise

            raise DatabaseOperationError(
                "Database operation failed",
                original_error=last_error,
            )

        return wrapper
    return decorator
