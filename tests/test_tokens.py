from datetime import timedelta

from core import tokens
from core.tokens import EMAIL_VERIFICATION, PASSWORD_RESET, utcnow
from models.user import User


def _user(db, username="tok"):
    user = User(email=f"{username}@x.com", username=username, password_hash="x")
    db.add(user)
    db.commit()
    return user


def test_issue_sets_both_columns(db):
    user = _user(db)
    token = tokens.issue(user, PASSWORD_RESET)
    assert len(token) == 64
    assert user.reset_token == token
    assert user.reset_expires_at > utcnow() + timedelta(hours=47)
    assert user.verification_token is None


def test_issue_replaces_previous(db):
    user = _user(db)
    first = tokens.issue(user, EMAIL_VERIFICATION)
    second = tokens.issue(user, EMAIL_VERIFICATION)
    db.commit()
    assert first != second
    assert tokens.find(db, EMAIL_VERIFICATION, first) is None
    assert tokens.find(db, EMAIL_VERIFICATION, second).id == user.id


def test_purposes_do_not_cross(db):
    user = _user(db)
    token = tokens.issue(user, EMAIL_VERIFICATION)
    db.commit()
    assert tokens.find(db, PASSWORD_RESET, token) is None


def test_redeem_is_single_use(db):
    user = _user(db)
    token = tokens.issue(user, PASSWORD_RESET)
    db.commit()

    assert tokens.redeem(db, PASSWORD_RESET, token).id == user.id
    db.commit()
    assert user.reset_token is None
    assert tokens.redeem(db, PASSWORD_RESET, token) is None


def test_redeem_expired_clears(db):
    user = _user(db)
    token = tokens.issue(user, PASSWORD_RESET, now=utcnow() - timedelta(hours=49))
    db.commit()

    assert not tokens.is_live(user, PASSWORD_RESET)
    assert tokens.redeem(db, PASSWORD_RESET, token) is None
    db.commit()
    assert user.reset_token is None
    assert user.reset_expires_at is None


def test_redeem_unknown(db):
    _user(db)
    assert tokens.redeem(db, PASSWORD_RESET, "0" * 64) is None
    assert tokens.find(db, PASSWORD_RESET, "") is None
