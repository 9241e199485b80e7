"""Fixtures for API tests.

Routes run against the per-test in-memory database through a get_db
override. The lifespan is not entered, so init_db never touches a real
database.
"""

import pytest
from fastapi.testclient import TestClient

from stridesync.api.sync import get_bridge
from stridesync.db.session import get_db
from stridesync.main import app


class FakeBridge:
    def __init__(self):
        self.activities = []
        self.error = None

    def fetch_activities(self, source, start_date, end_date):
        if self.error is not None:
            raise self.error
        return [a for a in self.activities if a.source == source]


@pytest.fixture
def fake_bridge():
    return FakeBridge()


@pytest.fixture
def client(session_factory, fake_bridge):
    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_bridge] = lambda: fake_bridge
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def headers(athlete_id):
    return {"X-Athlete-Id": athlete_id}
