"""
Database session management and configuration.

This module provides the SQLAlchemy engine, session factory, and
dependency injection for FastAPI endpoints. The analytics service only
reads from the record store; sessions are never committed.
"""
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from app.config import get_settings

settings = get_settings()

# Configure connection pooling for production databases
pool_config = {}
if "postgresql" in settings.DATABASE_URL or "mysql" in settings.DATABASE_URL:
    pool_config = {
        'pool_size': 10,              # Number of connections to maintain
        'max_overflow': 20,            # Maximum number of connections beyond pool_size
        'pool_pre_ping': True,         # Verify connections before using them
        'pool_recycle': 3600,          # Recycle connections after 1 hour
    }
elif "sqlite" in settings.DATABASE_URL:
    # SQLite doesn't benefit from pooling but needs thread safety
    pool_config = {
        'connect_args': {"check_same_thread": False}
    }

# Create SQLAlchemy engine
engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,  # Log SQL queries in debug mode
    **pool_config
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for read-only database sessions.

    Usage:
        @router.get("/items/")
        def read_items(db: Session = Depends(get_db)):
            return db.query(Item).all()

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db():
    """
    Create the record store tables.

    Note: the schema is owned by the test-run ingestion service; this is
    only meant for local development and the seed script.
    """
    from app.models.db_models import Base
    Base.metadata.create_all(bind=engine)
