"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine and a session that rolls back
after each test, so tests do not affect each other. API tests get their own
in-memory database and a TestClient whose `get_db` is pointed at it.
"""
from __future__ import annotations

import os

# Settings are read at import time by civigest.db.session.
os.environ.setdefault("CIVIGEST_JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("CIVIGEST_AGENT_JWT_SECRET", "test-agent-secret-key-long-enough-for-hs256")
os.environ.setdefault("CIVIGEST_DB_URL", "sqlite://")
os.environ.setdefault("CIVIGEST_SEED_DEMO_DATA", "false")
os.environ.setdefault("CIVIGEST_BCRYPT_ROUNDS", "4")

from pathlib import Path

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from civigest.settings import Settings
from tests.factories import build_world

TEST_DB_URL = "sqlite:///:memory:"
REPO_ROOT = Path(__file__).resolve().parents[1]
TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
TEST_AGENT_SECRET = "test-agent-secret-key-long-enough-for-hs256"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from civigest.db.base import Base
    from civigest.db import filters as _filters  # noqa: F401  (registers models + scope hook)

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    The transaction is rolled back so the next test gets a clean state.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jwt_secret=TEST_SECRET,
        agent_jwt_secret=TEST_AGENT_SECRET,
        bcrypt_rounds=4,
        seed_demo_data=False,
        security_config_path=str(REPO_ROOT / "config" / "security_config.yaml"),
    )


@pytest.fixture
def world(db_session):
    return build_world(db_session)


# ---- API -----------------------------------------------------------------------------


@pytest.fixture
def api_sessions(tables):
    """Session factory for API tests; commits are real, the engine is per-test."""
    return sessionmaker(bind=tables, autocommit=False, autoflush=False, class_=Session)


@pytest.fixture
def api_db(api_sessions):
    session = api_sessions()
    yield session
    session.close()


@pytest.fixture
def api_world(api_db):
    return build_world(api_db)


@pytest.fixture
def client(api_sessions, settings):
    from civigest.db.filters import bind_scope
    from civigest.db.session import get_db
    from civigest.main import create_app

    def _get_test_db(request: Request):
        db = api_sessions()
        try:
            scope = getattr(request.state, "scope", None)
            if scope is not None:
                bind_scope(db, scope)
            yield db
        finally:
            db.close()

    app = create_app(settings)
    app.dependency_overrides[get_db] = _get_test_db
    with TestClient(app) as test_client:
        yield test_client
