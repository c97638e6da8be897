"""
Shared pytest fixtures for the shop API tests.

Provides:
- db_engine    – in-memory SQLite engine with all tables created
- db_session   – plain ORM session on that engine (for seeding rows directly)
- client       – FastAPI TestClient with get_db overridden to use in-memory DB
- make_user    – factory inserting a User row (admins can't self-register)
- login        – log a user in through the API, return the access token
- csrf_token   – GET /csrf-token on the client; the secret cookie stays in the jar
- issued_long_ago – run a callable with itsdangerous clocks set back (expired tokens)
"""

import time

import pytest
from fastapi.testclient import TestClient
from itsdangerous.timed import TimestampSigner
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import src.app.models  # registers all models with Base.metadata  # noqa: F401
from src.app.auth import _reset_rate_limits, hash_password
from src.app.database import Base, get_db
from src.app.main import app
from src.app.models import Role, User

PASSWORD = "password123"


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Reset the in-memory login-attempt counter before every test."""
    _reset_rate_limits()
    yield


@pytest.fixture()
def db_engine():
    # StaticPool ensures all connections from this engine share the SAME
    # in-memory database (critical for SQLite :memory:).
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db_session(db_engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = Session()
    yield db
    db.close()


@pytest.fixture()
def client(db_engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def _override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session):
    def _make(email: str, role: Role = Role.customer, name: str = "Test User", **fields) -> User:
        user = User(
            email=email,
            name=name,
            password_hash=hash_password(PASSWORD),
            role=role,
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def login(client):
    def _login(email: str, password: str = PASSWORD) -> str:
        r = client.post("/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        return r.json()["accessToken"]

    return _login


@pytest.fixture()
def admin_token(make_user, login) -> str:
    make_user("admin@example.com", role=Role.admin, name="Admin")
    return login("admin@example.com")


@pytest.fixture()
def csrf_token(client) -> str:
    r = client.get("/csrf-token")
    assert r.status_code == 200
    return r.json()["csrfToken"]


@pytest.fixture()
def issued_long_ago():
    """Return a helper calling *fn* with itsdangerous timestamps shifted back.

    Tokens created inside come out already aged, e.g. an expired access token.
    """

    def _call(fn, seconds: int = 3600):
        with pytest.MonkeyPatch.context() as m:
            m.setattr(TimestampSigner, "get_timestamp", lambda self: int(time.time()) - seconds)
            return fn()

    return _call
