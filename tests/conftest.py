"""
Pytest fixtures for FinSync tests. Uses an in-memory SQLite DB and an
in-memory stand-in for Redis, so no services need to be running.
"""

from __future__ import annotations

import os

# Must be set before finsync.database creates its engine
os.environ["DATABASE_URL"] = "sqlite://"

import pytest


class InMemoryRedis:
    """Just enough of the redis-py client for the pending intent store."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def ping(self):
        return True

    def set(self, key, value, ex=None):
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    def get(self, key):
        return self.data.get(key)

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed


@pytest.fixture
def fake_redis():
    return InMemoryRedis()


@pytest.fixture
def db_session():
    """Fresh tables for every test."""
    from finsync.database import SessionLocal, engine
    from finsync.models import Base

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session, fake_redis):
    """FastAPI TestClient with Redis swapped for the in-memory stand-in."""
    from fastapi.testclient import TestClient

    from finsync.main import app, redis_dependency

    app.dependency_overrides[redis_dependency] = lambda: fake_redis
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
