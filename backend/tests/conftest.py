"""
Shared fixtures. DATABASE_URL must be set before topic_engine is imported: settings and the engine
are built at import time. Each test gets a fresh schema on a file SQLite database.
"""
import os
import tempfile
from pathlib import Path

_TEST_DB = Path(tempfile.gettempdir()) / f"test_topic_engine_{os.getpid()}.db"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from topic_engine.config import settings
from topic_engine.database import Base, SessionLocal, engine
from topic_engine.main import app
import topic_engine.models  # noqa: F401


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def make_token(actor_id: str) -> str:
    return jwt.encode({"sub": actor_id}, settings.secret_key, algorithm=settings.jwt_algorithm)


def auth_headers(actor_id: str = "author-1") -> dict:
    return {"Authorization": f"Bearer {make_token(actor_id)}"}


@pytest.fixture
def headers_for():
    """headers_for("reviewer-1") -> Authorization header for that actor."""
    return auth_headers


@pytest.fixture
def client():
    return TestClient(app)


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    if _TEST_DB.exists():
        _TEST_DB.unlink()
