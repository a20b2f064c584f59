import os

# Settings are read at import time; give them a test environment first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789-abcdefghijklmnopqrstuvwxyz")
os.environ["ENVIRONMENT"] = "development"
os.environ["APP_URL"] = "http://localhost:3000"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from core.security import hash_password
from core.tokens import utcnow
from database import Base, make_engine, make_session_factory
from models.user import User
from mail_doubles import Inbox, RecordingMailer


@pytest.fixture
def engine():
    engine = make_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def app(session_factory, mailer):
    from main import create_app

    app = create_app()
    app.state.session_factory = session_factory
    app.state.mailer = mailer
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def inbox(mailer, client):
    return Inbox(mailer)


@pytest.fixture
def create_user(session_factory):
    """Insert a user straight into the database and return its id."""

    def _create(
        username="alice",
        email=None,
        password="password123!",
        verified=True,
        role="user",
        two_factor=False,
    ):
        with session_factory() as session:
            user = User(
                email=email or f"{username}@x.com",
                username=username,
                password_hash=hash_password(password),
                role=role,
                email_verified_at=utcnow() if verified else None,
                two_factor_enabled=two_factor,
            )
            session.add(user)
            session.commit()
            return user.id

    return _create


@pytest.fixture
def load_user(session_factory):
    """Fresh read of a user row, detached from any session."""

    def _load(user_id):
        with session_factory() as session:
            user = session.get(User, user_id)
            session.expunge(user)
            return user

    return _load


@pytest.fixture
def login(client):
    def _login(identifier="alice", password="password123!"):
        return client.post("/auth/login", json={"emailOrUsername": identifier, "password": password})

    return _login
