"""Base model configuration."""
from datetime import UTC, datetime
from typing import Generator

from sqlalchemy import Column, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from vocabsync.config import settings
from vocabsync.models.types import UTCDateTime

# Create SQLAlchemy engine
engine = create_engine(settings.database.url, echo=settings.database.echo)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create declarative base class
Base = declarative_base()


class TimestampMixin:
    """Mixin to add timestamp columns to models."""
    created_at = Column(UTCDateTime(), default=lambda: datetime.now(UTC))
    updated_at = Column(
        UTCDateTime(),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Initialize database."""
    # Import models so they are registered on the metadata
    from vocabsync.models import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
