"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support
- Table definitions for streaks and subscriptions
"""
from typing import Optional
from contextlib import contextmanager
import logging
import os

from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, Date, DateTime, Index, UniqueConstraint, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func

from kingdomquest.core.config import settings

logger = logging.getLogger("kingdomquest")

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine and session factory
_engine = None
_SessionLocal = None
_schema_ready = False


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return os.getenv("DATABASE_URL") or settings.DATABASE_URL


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal, _schema_ready

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    # SQLite connections are handed across the request threadpool
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}

    _engine = create_engine(
        url,
        connect_args=connect_args,
        poolclass=QueuePool,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        echo=False,  # Set to True for SQL query logging
    )

    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )
    _schema_ready = False

    return _engine


def dispose_engine() -> None:
    """Dispose the current engine and forget it (tests switch databases)."""
    global _engine, _SessionLocal, _schema_ready
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
    _schema_ready = False


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


def ensure_schema() -> bool:
    """
    Create missing tables once per engine (idempotent).

    Returns:
        True if the schema is ready, False if it could not be created
    """
    global _schema_ready
    if _schema_ready:
        return True
    try:
        create_all_tables()
    except (SQLAlchemyError, ValueError) as e:
        logger.warning(f"Database schema setup failed: {e}")
        return False
    _schema_ready = True
    return True


def drop_all_tables():
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    engine = get_engine()
    metadata.drop_all(bind=engine)


def check_connection() -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, ValueError) as e:
        logger.warning(f"Database connection check failed: {e}")
        return False


# Prayer streaks: one row per user
prayer_streaks = Table(
    'prayer_streaks',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False),
    Column('current_streak', Integer, nullable=False),
    Column('longest_streak', Integer, nullable=False),
    Column('last_prayer_date', Date, nullable=False),
    Column('streak_start', Date, nullable=False),
    Column('missed_days', Integer, nullable=False, server_default='0'),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    UniqueConstraint('user_id', name='uq_prayer_streaks_user'),
)

# Prayer day log: how many prayers a user logged per UTC day
prayer_days = Table(
    'prayer_days',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('day', Date, nullable=False),
    Column('prayers_count', Integer, nullable=False, server_default='1'),
    UniqueConstraint('user_id', 'day', name='uq_prayer_days_user_day'),
    # Composite index for history lookups: (user_id, day)
    Index('idx_prayer_days_user_day', 'user_id', 'day'),
)

# Subscriptions: only rows with status='active' grant a plan
user_subscriptions = Table(
    'user_subscriptions',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('plan_name', String(50), nullable=False),
    Column('status', String(50), nullable=False, server_default='active'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_user_subscriptions_user_status', 'user_id', 'status'),
)
