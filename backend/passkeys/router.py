# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
WebAuthn (passkey) endpoints.

Registration (signed-in user adds a passkey)
    GET  /auth/webauthn/register-options   creation options + challenge cookie
    POST /auth/webauthn/register-verify    attestation check, store authenticator

Authentication (passwordless login)
    GET  /auth/webauthn/login-options      assertion options + two ceremony cookies
    POST /auth/webauthn/login-verify       assertion check, bump counter, issue session

Nothing is persisted when a verification fails.  The signature counter is
checked by the verifier: an assertion whose counter does not move past the
stored value is rejected, which is the cloned-credential signal.
"""

import json
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    options_to_json,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url
from webauthn.helpers.structs import (
    AttestationConveyancePreference,
    AuthenticatorSelectionCriteria,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from database import get_db
from core.logger import logger
from core.security import get_current_user, start_session
from models.authenticator import Authenticator
from models.user import User
from passkeys.ceremony import (
    AUTH_CHALLENGE_COOKIE,
    AUTH_USER_COOKIE,
    PURPOSE_AUTHENTICATE,
    PURPOSE_CANDIDATE,
    PURPOSE_REGISTER,
    REGISTRATION_COOKIE,
    clear_ceremony_cookie,
    decode_public_key,
    encode_public_key,
    read_ceremony,
    relying_party,
    set_ceremony_cookie,
    sign_ceremony,
    split_transports,
)

router = APIRouter(prefix="/auth/webauthn", tags=["webauthn"])

_VERIFY_FAIL = "Verification failed"
_ALREADY_REGISTERED = "Authenticator already registered"


def _credential_registered(db: Session, credential_id: str) -> bool:
    return db.get(Authenticator, credential_id) is not None


def _descriptors(authenticators) -> list[PublicKeyCredentialDescriptor]:
    return [
        PublicKeyCredentialDescriptor(
            id=base64url_to_bytes(a.id),
            transports=split_transports(a.transports),
        )
        for a in authenticators
    ]


# ---------------------------------------------------------------------------
# GET /auth/webauthn/register-options
# ---------------------------------------------------------------------------


@router.get("/register-options")
def register_options(
    request: Request,
    response: Response,
    current_user: User = Depends(get_current_user),
):
    """
    Creation options for the browser.  Existing passkeys go into the
    exclusion list so the same authenticator cannot be registered twice.
    """
    rp = relying_party(request)
    options = generate_registration_options(
        rp_id=rp.rp_id,
        rp_name=rp.rp_name,
        user_id=str(current_user.id).encode("utf-8"),
        user_name=current_user.username,
        attestation=AttestationConveyancePreference.NONE,
        authenticator_selection=AuthenticatorSelectionCriteria(
            resident_key=ResidentKeyRequirement.PREFERRED,
            user_verification=UserVerificationRequirement.PREFERRED,
        ),
        exclude_credentials=_descriptors(current_user.authenticators),
    )

    set_ceremony_cookie(
        response,
        REGISTRATION_COOKIE,
        sign_ceremony(PURPOSE_REGISTER, options.challenge, str(current_user.id)),
    )
    return json.loads(options_to_json(options))


# ---------------------------------------------------------------------------
# POST /auth/webauthn/register-verify
# ---------------------------------------------------------------------------


@router.post("/register-verify")
def register_verify(
    request: Request,
    response: Response,
    credential: dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    state = read_ceremony(request.cookies.get(REGISTRATION_COOKIE), PURPOSE_REGISTER)
    if state.user_id != str(current_user.id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Challenge not found or expired")

    rp = relying_party(request)
    try:
        verification = verify_registration_response(
            credential=credential,
            expected_challenge=state.challenge,
            expected_origin=rp.origin,
            expected_rp_id=rp.rp_id,
        )
    except Exception as exc:
        logger.warning("passkey registration rejected | user_id=%s error=%s", current_user.id, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_VERIFY_FAIL) from exc

    credential_id = bytes_to_base64url(verification.credential_id)
    if _credential_registered(db, credential_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_ALREADY_REGISTERED)

    transports = (credential.get("response") or {}).get("transports") or []
    device_type = verification.credential_device_type
    db.add(Authenticator(
        id=credential_id,
        user_id=current_user.id,
        public_key=encode_public_key(verification.credential_public_key),
        counter=verification.sign_count,
        device_type=getattr(device_type, "value", device_type),
        backed_up=bool(verification.credential_backed_up),
        transports=",".join(str(t) for t in transports) or None,
    ))
    try:
        db.commit()
    except IntegrityError:
        # A concurrent request stored the same credential first
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_ALREADY_REGISTERED)

    logger.info("passkey registered | user_id=%s", current_user.id)
    clear_ceremony_cookie(response, REGISTRATION_COOKIE)
    return {"ok": True}


# ---------------------------------------------------------------------------
# GET /auth/webauthn/login-options?username=
# ---------------------------------------------------------------------------


@router.get("/login-options")
def login_options(
    request: Request,
    response: Response,
    username: str = Query("", description="E-mail or username of the account signing in"),
    db: Session = Depends(get_db),
):
    """
    Assertion options.  An unknown account still gets a well-formed answer
    (empty allow-list) and both cookies, so the response shape does not
    reveal whether it exists.
    """
    rp = relying_party(request)
    user = None
    if username:
        user = (
            db.query(User)
            .filter(or_(User.email == username, User.username == username))
            .first()
        )

    options = generate_authentication_options(
        rp_id=rp.rp_id,
        allow_credentials=_descriptors(user.authenticators) if user else [],
        user_verification=UserVerificationRequirement.PREFERRED,
    )

    candidate = str(user.id) if user else ""
    set_ceremony_cookie(
        response,
        AUTH_CHALLENGE_COOKIE,
        sign_ceremony(PURPOSE_AUTHENTICATE, options.challenge, candidate),
    )
    set_ceremony_cookie(
        response,
        AUTH_USER_COOKIE,
        sign_ceremony(PURPOSE_CANDIDATE, options.challenge, candidate),
    )
    return json.loads(options_to_json(options))


# ---------------------------------------------------------------------------
# POST /auth/webauthn/login-verify
# ---------------------------------------------------------------------------


@router.post("/login-verify")
def login_verify(
    request: Request,
    response: Response,
    credential: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    challenge_state = read_ceremony(request.cookies.get(AUTH_CHALLENGE_COOKIE), PURPOSE_AUTHENTICATE)
    candidate_state = read_ceremony(request.cookies.get(AUTH_USER_COOKIE), PURPOSE_CANDIDATE)
    if (
        challenge_state.challenge != candidate_state.challenge
        or challenge_state.user_id != candidate_state.user_id
    ):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Session expired or invalid")

    user = db.get(User, int(challenge_state.user_id)) if challenge_state.user_id.isdigit() else None
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.disabled_at:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Your account is disabled")

    authenticator = next((a for a in user.authenticators if a.id == credential.get("id")), None)
    if authenticator is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Authenticator not found")

    rp = relying_party(request)
    try:
        verification = verify_authentication_response(
            credential=credential,
            expected_challenge=challenge_state.challenge,
            expected_rp_id=rp.rp_id,
            expected_origin=rp.origin,
            credential_public_key=decode_public_key(authenticator.public_key),
            credential_current_sign_count=authenticator.counter,
            require_user_verification=False,
        )
    except Exception as exc:
        logger.warning("passkey login rejected | user_id=%s error=%s", user.id, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_VERIFY_FAIL) from exc

    authenticator.counter = verification.new_sign_count
    db.commit()

    logger.info("login ok (passkey) | user_id=%s", user.id)
    start_session(response, user)
    clear_ceremony_cookie(response, AUTH_CHALLENGE_COOKIE)
    clear_ceremony_cookie(response, AUTH_USER_COOKIE)
    return {"ok": True}
