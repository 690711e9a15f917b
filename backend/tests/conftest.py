"""
Shared test fixtures.

Service tests run against both storage backends through the parametrized
`storage` fixture; API tests use a TestClient bound to an in-memory SQLite
session.
"""
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend import models  # noqa: F401 - register tables with Base
from backend.auth import TokenIdentityProvider
from backend.database import Base
from backend.storage import DatabaseStorage, MemoryStorage


@pytest.fixture
def db_session():
    """Fresh in-memory SQLite database per test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def db_storage(db_session):
    return DatabaseStorage(db_session)


@pytest.fixture(params=["memory", "database"])
def storage(request):
    """Each test using this runs once per storage backend"""
    if request.param == "memory":
        return MemoryStorage()
    return DatabaseStorage(request.getfixturevalue("db_session"))


@pytest.fixture
def make_user(storage):
    """Factory creating users (passwords are not hashed here)"""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        data = {
            "username": f"user{n}",
            "email": f"user{n}@example.com",
            "name": f"User {n}",
            "password": "not-a-hash",
            "company_id": None,
            "role": "user",
        }
        data.update(overrides)
        return storage.create_user(data)

    return _make


@pytest.fixture
def make_challenge(storage):
    """Factory creating challenges with sensible defaults"""
    def _make(**overrides):
        data = {
            "title": "Bike Week",
            "description": "Cycle to work",
            "start_date": date(2024, 1, 1),
            "end_date": date(2024, 12, 31),
            "points_reward": 50,
            "goal_type": "days",
            "goal_value": 5,
            "commute_type": None,
            "company_id": None,
        }
        data.update(overrides)
        return storage.create_challenge(data)

    return _make


@pytest.fixture
def client(db_session):
    """TestClient whose storage is the test session; identity by token or ?userId="""
    from backend.main import app
    from backend.dependencies import get_storage

    app.dependency_overrides[get_storage] = lambda: DatabaseStorage(db_session)
    previous_provider = app.state.identity_provider
    app.state.identity_provider = TokenIdentityProvider(allow_query_param=True)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        app.state.identity_provider = previous_provider
