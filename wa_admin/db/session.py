# wa_admin/db/session.py
"""
Database session management.
Builds the engine/session factory and provides a transactional context manager.
"""
import logging
from contextlib import contextmanager
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

log = logging.getLogger("wa_admin.database")


# ────────────────────────────────────────────
# SQLAlchemy Engine
# ────────────────────────────────────────────
def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create the SQLAlchemy engine.

    SQLite (used by tests and local runs) shares one connection so an
    in-memory database survives across sessions and threads.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo
        )
    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before using
        echo=echo
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


# ────────────────────────────────────────────
# Context Manager
# ────────────────────────────────────────────
@contextmanager
def get_db_session(session_factory: sessionmaker):
    """
    Context manager for database sessions.

    Usage:
        with get_db_session(factory) as db:
            db.add(row)
    """
    db: Session = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# ────────────────────────────────────────────
# Database Utilities
# ────────────────────────────────────────────
def test_db_connection(session_factory: sessionmaker) -> bool:
    """Test database connection"""
    try:
        with get_db_session(session_factory) as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        log.error(f"❌ Database connection failed: {e}")
        return False


# Keep pytest from collecting the helper above
test_db_connection.__test__ = False


def init_db(engine: Engine):
    """Create all tables defined in models."""
    from wa_admin.db.base import Base
    try:
        Base.metadata.create_all(bind=engine)
        log.info("✅ Database tables initialized")
    except Exception as e:
        log.error(f"❌ Failed to initialize database: {e}")
        raise
