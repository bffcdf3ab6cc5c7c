"""
SQLAlchemy declarative base and engine construction.

This module provides:
- Base: declarative base shared by all Augury models
- create_db_engine: engine factory (SQLite gets a thread-safe static pool
  when in-memory)
- init_db: create all tables
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create the SQLAlchemy engine for a database URL.

    In-memory SQLite databases share one connection across threads so the
    scheduler, the API and the CLI all see the same data.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)

    return create_engine(
        database_url,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


def init_db(engine: Engine) -> None:
    """Create all tables registered on Base."""
    # Register models on Base.metadata before create_all
    import augury.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(f"Database tables ready ({engine.url.render_as_string(hide_password=True)})")
