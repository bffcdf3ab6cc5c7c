"""
Database session context managers.
Provides reusable session and transaction management for services,
scheduler jobs and scripts.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

# Session.info key holding the current atomic() nesting depth
_ATOMIC_DEPTH_KEY = "augury.atomic_depth"


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create the session factory bound to an engine."""
    return sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        expire_on_commit=False,
    )


@contextmanager
def get_db_context(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for database sessions in scheduler jobs or scripts.

    Usage:
        with get_db_context(factory) as db:
            engine.resolve_round(db, operator, round_id)

    Yields:
        Session: SQLAlchemy database session

    Ensures:
        - Session is properly closed even on exceptions
        - Connection is returned to pool
        - Rollback on error
    """
    db = session_factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Generator[Session, None, None]:
    """
    Run a block as one all-or-nothing unit of work.

    Commits when the block completes, rolls back and re-raises on any
    exception so no partial write is ever observable.

    Blocks nest: only the outermost block on a session commits or rolls
    back. An inner block (for example a registry write made from inside a
    payout transfer) joins the enclosing unit of work instead of committing
    its pending writes early.
    """
    depth = db.info.get(_ATOMIC_DEPTH_KEY, 0)
    db.info[_ATOMIC_DEPTH_KEY] = depth + 1
    try:
        yield db
        if depth == 0:
            db.commit()
    except Exception:
        if depth == 0:
            db.rollback()
        raise
    finally:
        db.info[_ATOMIC_DEPTH_KEY] = depth
