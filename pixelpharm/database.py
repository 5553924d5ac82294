"""
Database Configuration and Connection
"""
import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from pixelpharm.config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,  # Verify connections before using
        "pool_size": 5,
        "max_overflow": 10,
    }


# Create SQLAlchemy engine
engine = create_engine(settings.database_url, **_engine_options(settings.database_url))

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create base class for models
Base = declarative_base()


def get_db():
    """
    Database dependency for FastAPI routes
    Yields a database session and ensures it's closed after use
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """
    Initialize database - create all tables
    """
    # Import all models to ensure they're registered with Base
    from pixelpharm import models  # noqa: F401

    bind = bind or engine
    logger.info("Creating database tables...")

    if settings.RESET_DATABASE:
        logger.warning("RESET_DATABASE=true - dropping all tables")
        Base.metadata.drop_all(bind=bind)

    Base.metadata.create_all(bind=bind)
    logger.info("Database tables created successfully")
