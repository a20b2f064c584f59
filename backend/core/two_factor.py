# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
E-mail based two-factor challenge engine.

A challenge lives on the user row and is identified by an opaque
``challenge_id`` handed to the client after a successful password check.
Only the newest challenge is valid; issuing overwrites the previous one.

    NoChallenge ──issue──▶ Issued ──right code──▶ Verified   (fields cleared)
                              │
                              ├──past expiry──▶ Expired      (fields cleared, 401)
                              └──5 misses────▶ Exhausted    (fields cleared, 429)

Bounds: 10 minute lifetime, 5 wrong codes, one active challenge per user,
10^6 code space.  The plaintext code only ever leaves the server by e-mail.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from core.logger import logger
from core.security import hash_password, verify_password
from core.tokens import as_utc, utcnow
from models.user import User

CHALLENGE_TTL = timedelta(minutes=10)
MAX_ATTEMPTS = 5


@dataclass(frozen=True)
class IssuedChallenge:
    challenge_id: str
    code: str


def generate_code() -> str:
    """Uniform six-digit code, leading zeros kept."""
    return f"{secrets.randbelow(1_000_000):06d}"


def issue_challenge(user: User, now: Optional[datetime] = None) -> IssuedChallenge:
    """
    Start a fresh challenge for *user*.  Does not commit; the caller e-mails
    ``code`` and returns ``challenge_id`` to the client.
    """
    code = generate_code()
    challenge_id = secrets.token_hex(16)
    user.two_factor_token = challenge_id
    user.two_factor_code_hash = hash_password(code)
    user.two_factor_expires_at = (now or utcnow()) + CHALLENGE_TTL
    user.two_factor_attempts = 0
    return IssuedChallenge(challenge_id=challenge_id, code=code)


def clear_challenge(user: User) -> None:
    user.two_factor_token = None
    user.two_factor_code_hash = None
    user.two_factor_expires_at = None
    user.two_factor_attempts = 0


def find_challenge(db: Session, challenge_id: str) -> Optional[User]:
    if not challenge_id:
        return None
    return db.query(User).filter(User.two_factor_token == challenge_id).first()


def verify_challenge(
    db: Session,
    challenge_id: str,
    code: str,
    now: Optional[datetime] = None,
) -> User:
    """
    Check *code* against the challenge and return the user on success.

    Every failure path persists its state change (cleared challenge or bumped
    attempt counter) before raising:

    * unknown challenge   → 404
    * expired             → 401, challenge cleared
    * attempts exhausted  → 429, challenge cleared
    * wrong code          → 401, attempts + 1
    """
    user = find_challenge(db, challenge_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Challenge not found")

    expires_at = as_utc(user.two_factor_expires_at)
    if expires_at is None or expires_at < (now or utcnow()):
        clear_challenge(user)
        db.commit()
        logger.info("2fa challenge expired | user_id=%s", user.id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Code expired, please sign in again",
        )

    if (user.two_factor_attempts or 0) >= MAX_ATTEMPTS:
        clear_challenge(user)
        db.commit()
        logger.warning("2fa challenge exhausted | user_id=%s", user.id)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many attempts, please sign in again",
        )

    ok = verify_password(user.two_factor_code_hash, code) if user.two_factor_code_hash else False
    if not ok:
        user.two_factor_attempts = (user.two_factor_attempts or 0) + 1
        db.commit()
        logger.info("2fa wrong code | user_id=%s attempts=%d", user.id, user.two_factor_attempts)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid code")

    clear_challenge(user)
    db.commit()
    return user
