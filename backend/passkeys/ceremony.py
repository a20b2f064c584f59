# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
WebAuthn ceremony plumbing: relying-party resolution, signed ceremony
cookies and public-key encoding.

Ceremony state never touches the database.  Between the *options* and the
*verify* step it rides in short-lived cookies whose value is a JWT signed
with the application secret.  Each JWT carries:

    pur  ceremony purpose (registration / authentication / candidate user)
    chl  base64url challenge
    sub  user id the ceremony is bound to ("" when the login candidate
         does not exist)
    exp  five minutes after issue

Binding the user id into the signed value means a client cannot steer the
login ceremony at another account by rewriting a plain cookie.
"""

import base64
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt as _jwt        # PyJWT
from fastapi import HTTPException, Request, Response, status
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url
from webauthn.helpers.structs import AuthenticatorTransport

from core.config import settings

REGISTRATION_COOKIE = "webauthn_registration_challenge"
AUTH_CHALLENGE_COOKIE = "webauthn_auth_challenge"
AUTH_USER_COOKIE = "webauthn_auth_user_id"

PURPOSE_REGISTER = "webauthn.register"
PURPOSE_AUTHENTICATE = "webauthn.authenticate"
PURPOSE_CANDIDATE = "webauthn.candidate"

CEREMONY_TTL = timedelta(minutes=5)
_ALGORITHM = "HS256"


@dataclass(frozen=True)
class RelyingParty:
    rp_id: str
    rp_name: str
    origin: str


@dataclass(frozen=True)
class CeremonyState:
    challenge: bytes
    user_id: str


def relying_party(request: Request) -> RelyingParty:
    """
    Derive RP id and origin from the Host the browser used.  WebAuthn needs
    https everywhere except localhost, so plain http is only used outside
    production.
    """
    host = request.headers.get("host") or "localhost"
    protocol = "https" if settings.is_production else "http"
    return RelyingParty(
        rp_id=host.split(":")[0],
        rp_name=settings.rp_name,
        origin=f"{protocol}://{host}",
    )


# ---------------------------------------------------------------------------
# Signed ceremony cookies
# ---------------------------------------------------------------------------


def sign_ceremony(purpose: str, challenge: bytes, user_id: str, now: Optional[datetime] = None) -> str:
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "pur": purpose,
        "chl": bytes_to_base64url(challenge),
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + CEREMONY_TTL,
    }
    return _jwt.encode(payload, settings.secret_key, algorithm=_ALGORITHM)


def read_ceremony(token: Optional[str], purpose: str) -> CeremonyState:
    """
    Verify a ceremony cookie value.  Missing, expired, forged or
    wrong-purpose values are all a 400: the client must restart the ceremony.
    """
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Challenge not found or expired")
    try:
        claims = _jwt.decode(
            token,
            settings.secret_key,
            algorithms=[_ALGORITHM],
            options={"require": ["pur", "chl", "sub", "exp"]},
        )
    except _jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Challenge not found or expired")
    if claims["pur"] != purpose:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Challenge not found or expired")
    return CeremonyState(challenge=base64url_to_bytes(claims["chl"]), user_id=claims["sub"])


def set_ceremony_cookie(response: Response, name: str, value: str) -> None:
    response.set_cookie(
        key=name,
        value=value,
        max_age=int(CEREMONY_TTL.total_seconds()),
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_ceremony_cookie(response: Response, name: str) -> None:
    response.delete_cookie(
        key=name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


# ---------------------------------------------------------------------------
# Stored credential encoding
# ---------------------------------------------------------------------------

# Rows written by older tooling carry a "base64:type<N>:" prefix
_LEGACY_PREFIX = re.compile(r"^base64:type\d+:")


def encode_public_key(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def decode_public_key(stored: str) -> bytes:
    """
    Turn the stored public-key string back into the raw COSE bytes the
    verifier needs.  Tolerates the legacy prefix and embedded whitespace.
    """
    cleaned = _LEGACY_PREFIX.sub("", str(stored).strip())
    cleaned = re.sub(r"\s+", "", cleaned)
    raw = base64.b64decode(cleaned, validate=True)
    if not raw:
        raise ValueError("public key decoded empty")
    return raw


def split_transports(joined: Optional[str]) -> list[AuthenticatorTransport]:
    """Comma-joined column value → transport enums; unknown names are skipped."""
    result = []
    for name in (joined or "").split(","):
        name = name.strip()
        if not name:
            continue
        try:
            result.append(AuthenticatorTransport(name))
        except ValueError:
            continue
    return result
