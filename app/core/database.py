"""
Database configuration and session management
Handles connection pooling, transactions and health checks
"""

import logging
import time
from contextlib import contextmanager
from typing import Generator

import sentry_sdk
from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.core.config import settings
from app.core.exceptions import DatabaseException

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()


def build_engine(database_url: str, **overrides):
    """Create an engine with pool settings suited to the backend"""
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}, "echo": settings.DEBUG}
    else:
        options = {
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_timeout": settings.DB_POOL_TIMEOUT,
            "pool_recycle": settings.DB_POOL_RECYCLE,
            "pool_pre_ping": settings.DB_POOL_PRE_PING,
            "echo": settings.DEBUG,
            "connect_args": {
                "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}",
            },
        }
    options.update(overrides)
    new_engine = create_engine(database_url, **options)

    if database_url.startswith("sqlite"):

        @event.listens_for(new_engine, "connect")
        def enable_sqlite_foreign_keys(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


engine = build_engine(settings.get_database_url())

# Create SessionLocal class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def init_db() -> None:
    """Initialize database, create tables if they don't exist"""
    try:
        # Import all models here to ensure they're registered
        from app import models  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")

        with engine.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            if result.scalar() == 1:
                logger.info("Database connection successful")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        if settings.SENTRY_DSN:
            sentry_sdk.capture_exception(e)
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session
    Ensures proper cleanup after request
    """
    db = SessionLocal()
    try:
        yield db
    except SQLAlchemyError as e:
        logger.error(f"Database error occurred: {e}")
        db.rollback()
        if settings.SENTRY_DSN:
            sentry_sdk.capture_exception(e)
        raise
    finally:
        db.close()


@contextmanager
def get_db_session(session_factory=SessionLocal) -> Generator[Session, None, None]:
    """
    Context manager for database session
    Use this for background tasks or non-request contexts
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Database session error: {e}")
        raise
    finally:
        session.close()


@contextmanager
def atomic(session: Session) -> Generator[Session, None, None]:
    """
    Run a unit of work as one transaction on an existing session.

    Everything flushed inside the block commits together or not at all.
    SQLAlchemy failures are rolled back and surfaced as DatabaseException.
    """
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Transaction rolled back: {e}", exc_info=True)
        if settings.SENTRY_DSN:
            sentry_sdk.capture_exception(e)
        raise DatabaseException() from e
    except Exception:
        session.rollback()
        raise


class DatabaseHealthCheck:
    """Database health check utility"""

    @staticmethod
    def check_connection(db: Session) -> dict:
        """Check database connection health"""
        start_time = time.time()
        try:
            db.execute(text("SELECT 1"))
            return {"status": "healthy", "response_time": round(time.time() - start_time, 4)}
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return {
                "status": "unhealthy",
                "error": "database unreachable",
                "response_time": round(time.time() - start_time, 4),
            }
