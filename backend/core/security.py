# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Central security module.  Password hashing, session tokens and the auth
guards live here.  No other module should touch raw session crypto or read
the session cookie directly.

Responsibilities
----------------
1. Password / one-time-code hashing         (argon2-cffi, Argon2id)
2. Session JWT creation / verification       (PyJWT / HS256)
3. Session cookie binding                    (set / clear)
4. Auth facade                               (get_session, require_auth,
                                              get_current_user)

Authorization (moderator / creator checks) is *not* done here; callers
inspect the role after obtaining the user.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt as _jwt        # PyJWT
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError
from fastapi import Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from core.config import settings
from database import get_db

SESSION_COOKIE = "session"
_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# 1.  Argon2id – password and 2FA code hashing
# ---------------------------------------------------------------------------
# Library-default cost parameters.  The same hasher stores six-digit 2FA
# codes, so a wrong code costs exactly as much as a wrong password.
# ---------------------------------------------------------------------------

_hasher = PasswordHasher()

# Compared against when the login identifier matches no account, so that
# "unknown user" and "wrong password" take the same time.
_DUMMY_HASH = _hasher.hash(secrets.token_hex(16))


def hash_password(plain: str) -> str:
    """Return the Argon2id encoded hash (salt + parameters embedded)."""
    return _hasher.hash(plain)


def verify_password(stored_hash: str, plain: str) -> bool:
    """
    Verify *plain* against an encoded hash produced by :func:`hash_password`.

    A malformed *stored_hash* raises ``argon2.exceptions.InvalidHashError``;
    that is a data-corruption bug, not a failed login, so it is not caught.
    """
    try:
        return _hasher.verify(stored_hash, plain)
    except VerifyMismatchError:
        return False


def burn_password_check(plain: str) -> None:
    """Spend one Argon2 verification without a real account behind it."""
    verify_password(_DUMMY_HASH, plain)


# ---------------------------------------------------------------------------
# 2.  JWT – session tokens
# ---------------------------------------------------------------------------


def create_session_jwt(
    sub: str,
    email: str,
    username: str,
    now: Optional[datetime] = None,
) -> str:
    """
    Sign a session JWT with HS256.

    Claims: sub (user id as string), email, username, iat, exp (iat + 7 days
    by default).
    """
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(sub),
        "email": email,
        "username": username,
        "iat": issued_at,
        "exp": issued_at + timedelta(days=settings.session_expire_days),
    }
    return _jwt.encode(payload, settings.secret_key, algorithm=_ALGORITHM)


def verify_session_jwt(token: str) -> dict:
    """
    Decode and verify a session JWT.  Raises HTTP 401 on any failure
    (expired, bad signature, malformed) – the caller cannot tell which.
    """
    try:
        return _jwt.decode(
            token,
            settings.secret_key,
            algorithms=[_ALGORITHM],
            options={"require": ["sub", "iat", "exp"]},
        )
    except _jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


# ---------------------------------------------------------------------------
# 3.  Cookie binding
# ---------------------------------------------------------------------------


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        max_age=settings.session_expire_days * 24 * 60 * 60,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def start_session(response: Response, user) -> dict:
    """Mint a session for *user*, bind it to the response, return the public profile."""
    token = create_session_jwt(str(user.id), user.email, user.username)
    set_session_cookie(response, token)
    return {"id": user.id, "email": user.email, "username": user.username}


# ---------------------------------------------------------------------------
# 4.  Auth facade – the only way other modules learn who is calling
# ---------------------------------------------------------------------------


def get_session(request: Request) -> Optional[dict]:
    """Return the verified session claims, or None for an anonymous caller."""
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        return None
    try:
        return verify_session_jwt(token)
    except HTTPException:
        return None


def require_auth(request: Request) -> dict:
    """
    Dependency: like :func:`get_session` but an anonymous caller is a 401.
    """
    session = get_session(request)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return session


def get_current_user(
    session: dict = Depends(require_auth),
    db: Session = Depends(get_db),
):
    """
    Dependency: resolve the session to its User row.

    Raises 401 if the account no longer exists, 403 if it has been disabled.
    """
    # Lazy import to avoid circular dependency at module load time
    from models.user import User  # noqa: E402

    user = db.get(User, int(session["sub"]))
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    if user.disabled_at:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account disabled",
        )
    return user
