# schoolrun/core/database.py
"""
Database configuration and session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
import logging

from ..config.settings import get_settings
from ..models.base import Base

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False):
    """Create an engine, with SQLite tuned for use from several threads."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)

    return create_engine(
        database_url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=echo
    )


settings = get_settings()

# Create database engine
engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def init_db(bind=None):
    """Create all tables that do not exist yet."""
    from .. import models  # noqa: F401  (registers every model on Base.metadata)

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables ensured")


def get_db():
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
