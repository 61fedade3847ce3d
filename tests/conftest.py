"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database. The HTTP client is built
without entering its context manager so the startup hook (and the
scheduler) never runs.
"""

import os
from datetime import date

os.environ.setdefault("FINANCE_SCHEDULER_ENABLED", "false")
os.environ.setdefault("FINANCE_DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import finance_tracker.models  # noqa: F401
from finance_tracker.auth import ACCESS_COOKIE, create_access_token
from finance_tracker.database import Base, get_db
from finance_tracker.dependencies import get_today
from finance_tracker.main import app
from finance_tracker.models import User
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.settings import SettingsCache, get_settings_cache
from finance_tracker.services.users import hash_password

TODAY = date(2024, 6, 15)
PASSWORD = "Forte@123"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="session")
def password_hash():
    return hash_password(PASSWORD)


@pytest.fixture
def make_user(db, password_hash):
    counter = {"n": 0}

    def _make(name=None, email=None):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=email or f"user{n}@example.com",
            name=name or f"Usuário {n}",
            password_hash=password_hash,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        AccountService(db).ensure_individual_account(user)
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user(name="Ana")


@pytest.fixture
def settings_cache():
    return SettingsCache(session_factory=TestingSessionLocal, ttl_seconds=300)


@pytest.fixture
def client(db, settings_cache):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_today] = lambda: TODAY
    app.dependency_overrides[get_settings_cache] = lambda: settings_cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    def _login(user):
        client.cookies.set(ACCESS_COOKIE, create_access_token({"sub": str(user.id)}))
        return client

    return _login


@pytest.fixture
def auth_client(login, user):
    return login(user)


@pytest.fixture
def today():
    return TODAY
