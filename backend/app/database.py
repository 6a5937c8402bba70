"""
Database connection and session management
"""
from sqlalchemy import create_engine, pool
from sqlalchemy.orm import declarative_base, sessionmaker
from app.config import settings


def _engine_for_url(url: str):
    """Create an engine; Postgres gets pooling and timeouts, SQLite a single shared connection."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=pool.StaticPool,
            echo=settings.DEBUG,
        )
    return create_engine(
        url,
        poolclass=pool.QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600,  # Recycle connections after 1 hour
        connect_args={
            "connect_timeout": 10,
            "options": "-c statement_timeout=120000"  # long uploads issue many small statements
        },
        echo=settings.DEBUG,
    )


engine = _engine_for_url(settings.database_connection_string)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def get_db():
    """
    Dependency for FastAPI to get database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create tables that do not exist yet."""
    # Import models so they register on Base.metadata
    from app import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
