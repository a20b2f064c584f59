# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Profile endpoints for the signed-in user – read profile, change e-mail or
username, change password.

Security notes
--------------
* Changing the e-mail does not lock the account out.  The new address is
  parked in ``pending_email`` and only replaces ``email`` once the link sent
  to it is opened; until then the user keeps logging in with the old one.
* change-password verifies the current password before accepting the new
  one, so a stolen (but not yet expired) session alone cannot take over the
  account.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import get_db
from core import tokens
from core.logger import logger
from core.mail import Mailer, get_mailer, send_password_changed_email, send_verification_email
from core.security import get_current_user, hash_password, verify_password
from models.user import User
from users.schemas import ChangePasswordRequest, MeResponse, UpdateProfileRequest, UpdateProfileResponse

router = APIRouter(prefix="/users", tags=["users"])


def _taken(db: Session, column, value: str, user_id: int) -> bool:
    return db.query(User.id).filter(column == value, User.id != user_id).first() is not None


# ---------------------------------------------------------------------------
# GET /users/me
# ---------------------------------------------------------------------------


@router.get("/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user's public profile (no secrets)."""
    return MeResponse(
        id=current_user.id,
        email=current_user.email,
        username=current_user.username,
        role=current_user.role,
        pending_email=current_user.pending_email,
        created_at=current_user.created_at,
    )


# ---------------------------------------------------------------------------
# PATCH /users/me
# ---------------------------------------------------------------------------


@router.patch("/me", response_model=UpdateProfileResponse)
def update_me(
    background_tasks: BackgroundTasks,
    body: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    email_changed = body.email is not None and body.email != current_user.email
    username_changed = body.username is not None and body.username != current_user.username

    if email_changed and _taken(db, User.email, body.email, current_user.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")
    if username_changed and _taken(db, User.username, body.username, current_user.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already in use")

    if username_changed:
        current_user.username = body.username

    token = None
    if email_changed:
        if current_user.email_verified_at:
            current_user.pending_email = body.email
        else:
            # Never verified: nothing to protect, just retarget the address
            current_user.email = body.email
            current_user.pending_email = None
        token = tokens.issue(current_user, tokens.EMAIL_VERIFICATION)
    elif body.email is not None and current_user.pending_email:
        # Re-submitting the current address cancels a pending change
        current_user.pending_email = None
        tokens.consume(current_user, tokens.EMAIL_VERIFICATION)

    db.commit()

    if token:
        logger.info("email change requested | user_id=%s", current_user.id)
        send_verification_email(background_tasks, mailer, body.email, token, current_user.username)

    return UpdateProfileResponse(requires_verification=token is not None)


# ---------------------------------------------------------------------------
# POST /users/password
# ---------------------------------------------------------------------------


@router.post("/password")
def change_password(
    background_tasks: BackgroundTasks,
    body: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    if body.new_password != body.confirm_password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Password confirmation does not match")

    if not verify_password(current_user.password_hash, body.current_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")

    current_user.password_hash = hash_password(body.new_password)
    db.commit()

    logger.info("password changed | user_id=%s", current_user.id)
    send_password_changed_email(background_tasks, mailer, current_user.email, current_user.username)
    return {"ok": True}
