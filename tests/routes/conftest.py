from typing import Iterator

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session

from tests.factories import fixed_clock
from vrumi.api.dependencies.database import get_db
from vrumi.api.dependencies.services import get_clock
from vrumi.main import app


@pytest.fixture
def client(db: Session) -> Iterator[TestClient]:
    """Create a test client bound to the test session and the fixed clock."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: fixed_clock

    # Don't use context manager - the lifespan would create tables on the app engine
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()
