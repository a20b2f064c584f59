# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Auth endpoints – registration, e-mail verification, password login,
two-factor challenge, password reset, logout.

Security notes
--------------
* Login returns the *same* error for "no such account" and "wrong password",
  and spends an Argon2 verification in both cases, so neither the message
  nor the timing tells them apart.
* resend / forgot / 2fa-resend answer ``{"ok": true}`` whether or not the
  target exists.  This prevents user enumeration.
* There is no lockout on password attempts; only a 2FA challenge is bounded
  (see core.two_factor).
* Verification and reset tokens are single use (core.tokens).
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import get_db
from core import tokens, two_factor
from core.config import settings
from core.logger import logger
from core.mail import (
    Mailer,
    get_mailer,
    send_password_changed_email,
    send_password_reset_email,
    send_two_factor_code_email,
    send_two_factor_disabled_email,
    send_verification_email,
    send_verified_confirmation,
)
from core.security import (
    burn_password_check,
    clear_session_cookie,
    get_current_user,
    hash_password,
    start_session,
    verify_password,
)
from models.user import User
from auth.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    OkResponse,
    PasswordConfirmRequest,
    RegisterRequest,
    ResendVerificationRequest,
    ResetPasswordRequest,
    TwoFactorRequiredResponse,
    TwoFactorResendRequest,
    TwoFactorStatusResponse,
    TwoFactorVerifyRequest,
)

router = APIRouter(prefix="/auth", tags=["auth"])

# Generic message used for both "no such account" and "wrong password"
_LOGIN_FAIL = "Invalid credentials"
_TOKEN_FAIL = "Invalid or expired token"


def _find_by_login(db: Session, email_or_username: str):
    return (
        db.query(User)
        .filter(or_(User.email == email_or_username, User.username == email_or_username))
        .first()
    )


def _two_factor_required(challenge_id: str) -> dict:
    return TwoFactorRequiredResponse(challenge_id=challenge_id).model_dump(by_alias=True)


def _verify_redirect(outcome: str) -> RedirectResponse:
    return RedirectResponse(f"{settings.app_url}/verify/{outcome}", status_code=status.HTTP_302_FOUND)


# ---------------------------------------------------------------------------
# POST /auth/register
# ---------------------------------------------------------------------------


@router.post("/register", response_model=OkResponse)
def register(
    background_tasks: BackgroundTasks,
    body: RegisterRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Create an unverified account and mail the verification link.
    No session is issued until the address is verified and the user logs in.
    """
    existing = (
        db.query(User.id)
        .filter(or_(User.email == body.email, User.username == body.username))
        .first()
    )
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email or username already in use")

    user = User(
        email=body.email,
        username=body.username,
        password_hash=hash_password(body.password),
        role="user",
    )
    token = tokens.issue(user, tokens.EMAIL_VERIFICATION)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race against a concurrent registration with the same identity
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email or username already in use")

    logger.info("user registered | user_id=%s", user.id)
    send_verification_email(background_tasks, mailer, user.email, token, user.username)
    return OkResponse()


# ---------------------------------------------------------------------------
# GET /auth/verify?token=  – browser-navigated, always redirects
# ---------------------------------------------------------------------------


@router.get("/verify")
def verify_email(
    background_tasks: BackgroundTasks,
    token: str | None = Query(None),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Consume a verification token and redirect to the success or invalid page.

    If the token confirms a pending address change, the pending address
    replaces the current one.
    """
    if not token:
        return _verify_redirect("invalid")

    user = tokens.find(db, tokens.EMAIL_VERIFICATION, token)
    if user is None:
        return _verify_redirect("invalid")

    if user.email_verified_at and not user.pending_email:
        return _verify_redirect("success")

    if not tokens.is_live(user, tokens.EMAIL_VERIFICATION):
        tokens.consume(user, tokens.EMAIL_VERIFICATION)
        db.commit()
        return _verify_redirect("invalid")

    tokens.consume(user, tokens.EMAIL_VERIFICATION)
    if user.pending_email:
        user.email = user.pending_email
        user.pending_email = None
    if not user.email_verified_at:
        user.email_verified_at = tokens.utcnow()
    try:
        db.commit()
    except IntegrityError:
        # The pending address was claimed by another account in the meantime
        db.rollback()
        return _verify_redirect("invalid")

    logger.info("email verified | user_id=%s", user.id)
    send_verified_confirmation(background_tasks, mailer, user.email, user.username)
    return _verify_redirect("success")


# ---------------------------------------------------------------------------
# POST /auth/resend  – new verification link
# ---------------------------------------------------------------------------


@router.post("/resend", response_model=OkResponse)
def resend_verification(
    background_tasks: BackgroundTasks,
    body: ResendVerificationRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Re-issue the verification link: to the account address while it is
    unverified, or to the pending address of an unfinished e-mail change.
    """
    user = _find_by_login(db, body.email_or_username)
    if not user or (user.email_verified_at and not user.pending_email):
        return OkResponse()

    token = tokens.issue(user, tokens.EMAIL_VERIFICATION)
    db.commit()
    send_verification_email(background_tasks, mailer, user.pending_email or user.email, token, user.username)
    return OkResponse()


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------


@router.post("/login")
def login(
    background_tasks: BackgroundTasks,
    body: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Password login.  Returns the public profile with a session cookie, or
    ``{"twoFactorRequired": true, "challengeId": ...}`` when the account has
    two-factor enabled (the code goes out by e-mail, never in the response).
    """
    user = _find_by_login(db, body.email_or_username)

    # Unified failure path – no information leaks about whether the account exists
    if not user:
        burn_password_check(body.password)
        logger.info("login failed | reason=unknown_account")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=_LOGIN_FAIL)
    if not verify_password(user.password_hash, body.password):
        logger.info("login failed | user_id=%s reason=bad_password", user.id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=_LOGIN_FAIL)

    if user.disabled_at:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Your account is disabled")

    if not user.email_verified_at:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Please verify your e-mail to activate your account",
        )

    if user.two_factor_enabled:
        issued = two_factor.issue_challenge(user)
        db.commit()
        logger.info("2fa challenge issued | user_id=%s", user.id)
        send_two_factor_code_email(background_tasks, mailer, user.email, issued.code, user.username)
        return _two_factor_required(issued.challenge_id)

    logger.info("login ok | user_id=%s", user.id)
    return start_session(response, user)


# ---------------------------------------------------------------------------
# POST /auth/2fa-verify
# ---------------------------------------------------------------------------


@router.post("/2fa-verify")
def two_factor_verify(
    body: TwoFactorVerifyRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    user = two_factor.verify_challenge(db, body.challenge_id, body.code)
    if user.disabled_at:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Your account is disabled")
    logger.info("login ok (2fa) | user_id=%s", user.id)
    return start_session(response, user)


# ---------------------------------------------------------------------------
# POST /auth/2fa-resend
# ---------------------------------------------------------------------------


@router.post("/2fa-resend")
def two_factor_resend(
    background_tasks: BackgroundTasks,
    body: TwoFactorResendRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Replace the challenge with a brand-new one (new id, new code, fresh
    expiry, attempts zeroed).  Unknown challenge ids get a plain ``ok``.
    """
    user = two_factor.find_challenge(db, body.challenge_id)
    if user is None:
        return {"ok": True}

    issued = two_factor.issue_challenge(user)
    db.commit()
    send_two_factor_code_email(background_tasks, mailer, user.email, issued.code, user.username)
    return _two_factor_required(issued.challenge_id)


# ---------------------------------------------------------------------------
# GET /auth/2fa-status   POST /auth/2fa-enable   POST /auth/2fa-disable
# ---------------------------------------------------------------------------


@router.get("/2fa-status", response_model=TwoFactorStatusResponse)
def two_factor_status(current_user: User = Depends(get_current_user)):
    return TwoFactorStatusResponse(enabled=bool(current_user.two_factor_enabled))


@router.post("/2fa-enable", response_model=TwoFactorStatusResponse)
def two_factor_enable(
    body: PasswordConfirmRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Turn on e-mailed sign-in codes.  The current password is re-checked."""
    if not verify_password(current_user.password_hash, body.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid password")

    current_user.two_factor_enabled = True
    db.commit()
    logger.info("2fa enabled | user_id=%s", current_user.id)
    return TwoFactorStatusResponse(enabled=True)


@router.post("/2fa-disable", response_model=TwoFactorStatusResponse)
def two_factor_disable(
    background_tasks: BackgroundTasks,
    body: PasswordConfirmRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """Turn off two-factor and drop any pending challenge.  The current password is re-checked."""
    if not verify_password(current_user.password_hash, body.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid password")

    if current_user.two_factor_enabled:
        current_user.two_factor_enabled = False
        two_factor.clear_challenge(current_user)
        db.commit()
        logger.info("2fa disabled | user_id=%s", current_user.id)
        send_two_factor_disabled_email(background_tasks, mailer, current_user.email, current_user.username)

    return TwoFactorStatusResponse(enabled=False)


# ---------------------------------------------------------------------------
# POST /auth/forgot   GET /auth/reset   POST /auth/reset
# ---------------------------------------------------------------------------


@router.post("/forgot", response_model=OkResponse)
def forgot_password(
    background_tasks: BackgroundTasks,
    body: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    user = db.query(User).filter(User.email == body.email).first()

    # Always answer OK to avoid user enumeration
    if not user:
        return OkResponse()

    token = tokens.issue(user, tokens.PASSWORD_RESET)
    db.commit()
    send_password_reset_email(background_tasks, mailer, user.email, token, user.username)
    return OkResponse()


@router.get("/reset", response_model=OkResponse)
def check_reset_token(
    token: str | None = Query(None),
    db: Session = Depends(get_db),
):
    """Let the reset page know up front whether its link still works.  Does not consume."""
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing token")

    user = tokens.find(db, tokens.PASSWORD_RESET, token)
    if user is None or not tokens.is_live(user, tokens.PASSWORD_RESET):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_TOKEN_FAIL)
    return OkResponse()


@router.post("/reset", response_model=OkResponse)
def reset_password(
    background_tasks: BackgroundTasks,
    body: ResetPasswordRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    user = tokens.redeem(db, tokens.PASSWORD_RESET, body.token)
    if user is None:
        # redeem() may have cleared an expired token
        db.commit()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_TOKEN_FAIL)

    user.password_hash = hash_password(body.password)
    db.commit()
    logger.info("password reset | user_id=%s", user.id)
    send_password_changed_email(background_tasks, mailer, user.email, user.username)
    return OkResponse()


# ---------------------------------------------------------------------------
# POST /auth/logout
# ---------------------------------------------------------------------------


@router.post("/logout", response_model=OkResponse)
def logout(response: Response):
    clear_session_cookie(response)
    return OkResponse()
