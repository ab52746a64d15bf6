"""
Database connection and session management.
"""

from contextlib import contextmanager
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from wb_reports.utils.config import get_config
from wb_reports.utils.logger import get_logger

load_dotenv(encoding="utf-8")

logger = get_logger(__name__)


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    SQLite needs cross-thread access because FastAPI runs sync routes in a
    thread pool; other backends get a pre-pinged connection pool.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=False,
        )
    return create_engine(
        database_url,
        pool_size=10,
        max_overflow=10,
        pool_pre_ping=True,
        echo=False,
    )


DATABASE_URL = get_config().app.database_url

engine = create_db_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI to get database session.

    Usage:
        @router.get("/tokens")
        def list_tokens(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database session.

    Usage:
        with get_db_context() as db:
            token = db.get(ApiToken, token_id)
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """Initialize database - create all tables."""
    from wb_reports.database.models import Base

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")
