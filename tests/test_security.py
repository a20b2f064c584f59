import base64
import json
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException
from starlette.requests import Request

from core.security import (
    SESSION_COOKIE,
    create_session_jwt,
    get_session,
    hash_password,
    require_auth,
    verify_password,
    verify_session_jwt,
)


def _request(cookie=None):
    headers = []
    if cookie is not None:
        headers.append((b"cookie", f"{SESSION_COOKIE}={cookie}".encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


# -- password hashing ------------------------------------------------------


def test_hash_roundtrip():
    stored = hash_password("correct horse")
    assert stored.startswith("$argon2id$")
    assert verify_password(stored, "correct horse")
    assert not verify_password(stored, "correct horsf")


def test_hash_is_salted():
    assert hash_password("same password") != hash_password("same password")


# -- session tokens --------------------------------------------------------


def test_session_jwt_claims():
    claims = verify_session_jwt(create_session_jwt("42", "a@x.com", "alice"))
    assert claims["sub"] == "42"
    assert claims["email"] == "a@x.com"
    assert claims["username"] == "alice"
    assert claims["exp"] - claims["iat"] == 7 * 24 * 60 * 60


def test_session_jwt_expired():
    issued = datetime.now(timezone.utc) - timedelta(days=8)
    token = create_session_jwt("42", "a@x.com", "alice", now=issued)
    with pytest.raises(HTTPException) as exc:
        verify_session_jwt(token)
    assert exc.value.status_code == 401


def test_session_jwt_wrong_key():
    token = jwt.encode(
        {"sub": "42", "iat": datetime.now(timezone.utc), "exp": datetime.now(timezone.utc) + timedelta(days=1)},
        "some-other-secret-key-that-is-long-enough",
        algorithm="HS256",
    )
    with pytest.raises(HTTPException):
        verify_session_jwt(token)


def test_session_jwt_payload_swap():
    header, _, signature = create_session_jwt("42", "a@x.com", "alice").split(".")
    forged = base64.urlsafe_b64encode(json.dumps({"sub": "1", "iat": 0, "exp": 9999999999}).encode()).rstrip(b"=")
    with pytest.raises(HTTPException):
        verify_session_jwt(f"{header}.{forged.decode()}.{signature}")


# -- facade ----------------------------------------------------------------


def test_get_session_anonymous():
    assert get_session(_request()) is None


def test_get_session_garbage_cookie():
    assert get_session(_request("not-a-jwt")) is None


def test_get_session_valid_cookie():
    session = get_session(_request(create_session_jwt("7", "b@x.com", "bob")))
    assert session["sub"] == "7"


def test_require_auth_anonymous():
    with pytest.raises(HTTPException) as exc:
        require_auth(_request())
    assert exc.value.status_code == 401
