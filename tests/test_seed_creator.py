import pytest

import seed_creator
from core.config import settings
from core.security import verify_password
from models.user import User


@pytest.fixture
def creator_settings(monkeypatch):
    monkeypatch.setattr(settings, "first_creator_email", "kyle@x.com")
    monkeypatch.setattr(settings, "first_creator_username", "kyle")
    monkeypatch.setattr(settings, "first_creator_password", "creator-pass-1")


def test_seed_creates_verified_creator(session_factory, creator_settings):
    assert seed_creator.seed(session_factory) is True
    with session_factory() as session:
        user = session.query(User).filter_by(username="kyle").one()
        assert user.role == "creator"
        assert user.email_verified_at is not None
        assert verify_password(user.password_hash, "creator-pass-1")


def test_seed_runs_once(session_factory, creator_settings):
    assert seed_creator.seed(session_factory) is True
    assert seed_creator.seed(session_factory) is False
    with session_factory() as session:
        assert session.query(User).filter_by(role="creator").count() == 1


def test_seed_without_settings(session_factory, monkeypatch):
    monkeypatch.setattr(settings, "first_creator_email", "")
    assert seed_creator.seed(session_factory) is False
