"""Lazily created SQLAlchemy engine and session factory."""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from agiletrack.core.config import get_settings

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_SessionLocal: sessionmaker | None = None


def get_engine() -> Engine:
    """Get or create the SQLAlchemy engine lazily."""
    global _engine
    if _engine is None:
        settings = get_settings()
        logger.info("Creating database engine")
        _engine = create_engine(
            settings.database_url,
            pool_pre_ping=True,
            pool_recycle=300,
            echo=settings.database_echo,
            future=True,
        )
    return _engine


def get_session_local() -> sessionmaker:
    """Get or create the session factory lazily."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, future=True)
        logger.info("Session factory created")
    return _SessionLocal


def dispose_engine() -> None:
    """Dispose of the engine and close pooled connections."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _SessionLocal = None
