"""Test configuration."""
import os
from datetime import datetime, UTC
from pathlib import Path
from typing import Generator

import pytest
from dotenv import load_dotenv

# Set test environment before any imports
os.environ["ENV"] = "test"

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from faker import Faker
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vocabsync.models import models  # noqa: F401  registers tables
from vocabsync.models.base import Base

fake = Faker()

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Create an in-memory database shared by all sessions of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def user_id() -> int:
    return fake.unique.random_int(min=1, max=1_000_000)


@pytest.fixture
def word_id() -> int:
    return fake.unique.random_int(min=1, max=1_000_000)


@pytest.fixture
def list_id() -> int:
    return fake.unique.random_int(min=1, max=1_000_000)


@pytest.fixture
def now() -> datetime:
    """Fixed wall clock for scheduler and sync tests."""
    return NOW
