"""
SQL utilities shared by the engine services.

SQLModel/SQLAlchemy may return aggregate results as int, None, or as a 1-tuple/Row.
Use scalar_int() to safely coerce to int everywhere, and atomic() to wrap a
mutating operation in exactly one commit.
"""
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Type, TypeVar

from sqlmodel import Session, SQLModel, select

ModelT = TypeVar("ModelT", bound=SQLModel)


def scalar_int(x: Any, default: int = 0) -> int:
    """Convert COUNT/MAX result to int. Handles int, None, or 1-tuple/Row."""
    if x is None:
        return default
    try:
        value = x[0]
    except (TypeError, IndexError, KeyError):
        value = x
    return default if value is None else int(value)


@contextmanager
def atomic(session: Session) -> Iterator[Session]:
    """Commit once on success, roll everything back on any exception."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def get_for_update(session: Session, model: Type[ModelT], row_id: int) -> Optional[ModelT]:
    """Load one row with a write lock (SELECT ... FOR UPDATE; SQLite engines lock at BEGIN IMMEDIATE instead)."""
    statement = (
        select(model)
        .where(model.id == row_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return session.exec(statement).first()
