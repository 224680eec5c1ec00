"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database with the full schema,
including the partial unique indexes the ledger and booking code rely on.
Services are built with a fixed clock so "today" and "now" never drift.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime  # noqa: E402
from typing import Callable, Iterator  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from tests.factories import fixed_clock, new_id  # noqa: E402
from vrumi.database import create_db_engine, init_db  # noqa: E402


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return fixed_clock


@pytest.fixture
def engine() -> Iterator[Engine]:
    test_engine = create_db_engine("sqlite://")
    init_db(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def db(engine: Engine) -> Iterator[Session]:
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def student_id() -> str:
    return new_id()


@pytest.fixture
def instructor_id() -> str:
    return new_id()
