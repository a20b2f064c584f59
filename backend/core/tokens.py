# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Single-use, expiring opaque tokens stored on the user row.

E-mail verification and password reset are the same state machine with a
different pair of columns; a :class:`TokenPurpose` names the pair.  Issuing
overwrites whatever token of that purpose the user already had, so there is
at most one live token per purpose.  What happens on consumption (mark the
address verified, replace the password hash) is up to the caller.

Nothing here commits – the calling handler owns the transaction.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from models.user import User


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite hands back naive values)."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class TokenPurpose:
    name: str
    token_field: str
    expires_field: str
    ttl: timedelta


EMAIL_VERIFICATION = TokenPurpose(
    name="email_verification",
    token_field="verification_token",
    expires_field="verification_expires_at",
    ttl=timedelta(hours=48),
)

PASSWORD_RESET = TokenPurpose(
    name="password_reset",
    token_field="reset_token",
    expires_field="reset_expires_at",
    ttl=timedelta(hours=48),
)


def new_token(nbytes: int = 32) -> str:
    """Cryptographically random hex string (2 * nbytes characters)."""
    return secrets.token_hex(nbytes)


def issue(user: User, purpose: TokenPurpose, now: Optional[datetime] = None) -> str:
    token = new_token()
    setattr(user, purpose.token_field, token)
    setattr(user, purpose.expires_field, (now or utcnow()) + purpose.ttl)
    return token


def find(db: Session, purpose: TokenPurpose, token: str) -> Optional[User]:
    if not token:
        return None
    column = getattr(User, purpose.token_field)
    return db.query(User).filter(column == token).first()


def is_live(user: User, purpose: TokenPurpose, now: Optional[datetime] = None) -> bool:
    if not getattr(user, purpose.token_field):
        return False
    expires_at = as_utc(getattr(user, purpose.expires_field))
    return expires_at is not None and expires_at >= (now or utcnow())


def consume(user: User, purpose: TokenPurpose) -> None:
    setattr(user, purpose.token_field, None)
    setattr(user, purpose.expires_field, None)


def redeem(
    db: Session,
    purpose: TokenPurpose,
    token: str,
    now: Optional[datetime] = None,
) -> Optional[User]:
    """
    Look up *token* and, if it is still live, consume it and return its user.

    Unknown tokens return None.  Expired tokens are cleared (passive cleanup)
    and also return None.
    """
    user = find(db, purpose, token)
    if user is None:
        return None
    if not is_live(user, purpose, now):
        consume(user, purpose)
        return None
    consume(user, purpose)
    return user
