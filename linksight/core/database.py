"""
Database engine, sessions and table definitions.

Postgres in deployments (pooled, pre-pinged connections); SQLite for local
runs and tests, where an in-memory database lives on one shared connection.
Tables are SQLAlchemy Core definitions; services query them directly.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, JSON, Index, UniqueConstraint, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.sql import func

from linksight.core.config import settings


logger = logging.getLogger("linksight")

metadata = MetaData()

POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # seconds

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def get_database_url() -> Optional[str]:
    """TEST_DATABASE_URL wins in test mode, DATABASE_URL otherwise."""
    if settings.ENV.lower() == "test" and settings.TEST_DATABASE_URL:
        return settings.TEST_DATABASE_URL
    return settings.DATABASE_URL


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {
        "poolclass": QueuePool,
        "pool_size": POOL_SIZE,
        "max_overflow": MAX_OVERFLOW,
        "pool_timeout": POOL_TIMEOUT,
        "pool_recycle": POOL_RECYCLE,
        "pool_pre_ping": True,
    }


def init_engine(database_url: Optional[str] = None) -> Engine:
    """(Re)bind the module engine and session factory to a database URL.

    Raises:
        ValueError: no URL given and none configured
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()
    if not url:
        raise ValueError("DATABASE_URL is not configured. Set DATABASE_URL in environment or .env file.")
    # Hosted Postgres providers still hand out postgres:// URLs
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]

    if _engine is not None:
        _engine.dispose()
    _engine = create_engine(url, echo=False, **_engine_options(url))
    _SessionLocal = sessionmaker(bind=_engine, autoflush=False)
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        init_engine()
    return _engine


@contextmanager
def get_db_session() -> Iterator[Session]:
    """
    Transactional session scope.

    Commits on success, rolls back and re-raises on error.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    if _SessionLocal is None:
        init_engine()
    session = _SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables() -> None:
    """Create missing tables (idempotent)."""
    metadata.create_all(bind=get_engine())


def truncate_all_tables() -> None:
    """Delete every row, children first. Test helper."""
    with get_engine().begin() as conn:
        for table in reversed(metadata.sorted_tables):
            conn.execute(table.delete())


def check_connection() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("Database connection check failed: %s", e)
        return False


# Users (identity + subscription state, written by the billing integration)
users = Table(
    'app_users',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('email', String(320), nullable=False, unique=True),
    Column('role', String(20), nullable=False, server_default='free'),
    Column('subscription_status', String(50), nullable=False, server_default='none'),
    Column('subscription_plan', String(50), nullable=False, server_default='free'),
    Column('subscription_start_date', DateTime(timezone=True), nullable=True),
    Column('next_billing_date', DateTime(timezone=True), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    Index('idx_app_users_role', 'role'),
)

# Premium limits: one row per (role, action_type, limit_type)
premium_limits = Table(
    'premium_limits',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('role', String(20), nullable=False),  # stored uppercase
    Column('action_type', String(50), nullable=False),
    Column('limit_type', String(50), nullable=False),
    Column('limit_value', Integer, nullable=False),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    UniqueConstraint('role', 'action_type', 'limit_type', name='uq_premium_limits_role_action_limit'),
    Index('idx_premium_limits_role_action', 'role', 'action_type'),
)

# Premium actions: append-only log
premium_actions = Table(
    'premium_actions',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('action_type', String(50), nullable=False),
    Column('metadata', JSON, nullable=False),
    Column('created_at', DateTime(timezone=True), nullable=False),
    # Composite index for usage queries: (user_id, action_type, created_at)
    Index('idx_premium_actions_user_type_created', 'user_id', 'action_type', 'created_at'),
    Index('idx_premium_actions_user_created', 'user_id', 'created_at'),
)
