# Database connection and session management (SQLAlchemy)

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from .config import settings

# SQLite (tests, local dev) needs cross-thread access for the ASGI test client
connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

# Create SQLAlchemy engine with connection pooling
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,  # Check connection before using
    pool_recycle=300,    # Recycle connections after 5 minutes
    connect_args=connect_args,
    echo=False           # Set to True for SQL query logging in development
)

# Create SessionLocal class for database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all database models
Base = declarative_base()


def get_db() -> Session:
    """
    Dependency function to get database session.
    Use in FastAPI route dependencies: `db: Session = Depends(get_db)`
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Create all tables defined in models. Call this once during startup."""
    # Models must be imported so they register on Base.metadata
    from insightful import models  # noqa: F401
    Base.metadata.create_all(bind=engine)


def drop_tables():
    """Drop all tables. Use with caution!"""
    Base.metadata.drop_all(bind=engine)
