# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Creator-only account management – list users, change roles, disable accounts.

Every endpoint in this router is guarded by ``require_creator``.  A request
that carries a valid session but belongs to any other role receives 403
before any business logic runs.

Role invariant: no path here can set the ``creator`` role (the request
schema does not accept it) or change the role of an account that already
holds it, whether that account is the caller or the target.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import get_db
from core.logger import logger
from core.security import get_current_user
from core.tokens import utcnow
from models.user import User
from admin.schemas import (
    BulkChangeRoleRequest,
    BulkChangeRoleResponse,
    ChangeRoleRequest,
    UserListResponse,
    UserRow,
)

router = APIRouter(tags=["admin"])


def require_creator(current_user: User = Depends(get_current_user)) -> User:
    """
    Dependency: wraps :func:`get_current_user` and additionally asserts
    ``role == 'creator'``.  Raises 403 otherwise.
    """
    if current_user.role != "creator":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return current_user


def _target(db: Session, user_id: int) -> User:
    target = db.get(User, user_id)
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return target


# ---------------------------------------------------------------------------
# GET /admin/users?q=&page=&pageSize=  – search and page through users
# ---------------------------------------------------------------------------


@router.get("/admin/users", response_model=UserListResponse)
def list_users(
    q: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    creator: User = Depends(require_creator),
    db: Session = Depends(get_db),
):
    """
    One page of users, oldest first.  ``q`` matches a substring of the
    username or e-mail.  No credential data leaves here (see the schema).
    """
    query = db.query(User)
    if q and q.strip():
        term = f"%{q.strip()}%"
        query = query.filter(or_(User.username.like(term), User.email.like(term)))

    total = query.count()
    rows = (
        query.order_by(User.created_at, User.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return UserListResponse(
        items=[UserRow.model_validate(row) for row in rows],
        total=total,
        page=page,
        page_size=page_size,
    )


# ---------------------------------------------------------------------------
# POST /users/{id}/role  – promote or demote one user
# ---------------------------------------------------------------------------


@router.post("/users/{user_id}/role")
def change_role(
    user_id: int,
    body: ChangeRoleRequest,
    creator: User = Depends(require_creator),
    db: Session = Depends(get_db),
):
    target = _target(db, user_id)
    if target.role == "creator":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="The creator's role cannot be changed")

    target.role = body.role
    db.commit()
    logger.info("role changed | by=%s target=%s role=%s", creator.id, user_id, body.role)
    return {"ok": True}


# ---------------------------------------------------------------------------
# POST /users/role-bulk  – same, for many users; creators are skipped
# ---------------------------------------------------------------------------


@router.post("/users/role-bulk", response_model=BulkChangeRoleResponse)
def change_role_bulk(
    body: BulkChangeRoleRequest,
    creator: User = Depends(require_creator),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(User)
        .filter(User.id.in_(body.ids), User.role != "creator")
        .all()
    )
    for row in rows:
        row.role = body.role
    db.commit()

    logger.info("role changed (bulk) | by=%s count=%d role=%s", creator.id, len(rows), body.role)
    return BulkChangeRoleResponse(updated=len(rows))


# ---------------------------------------------------------------------------
# POST /users/{id}/disable  – block every login path for an account
# ---------------------------------------------------------------------------


@router.post("/users/{user_id}/disable")
def disable_user(
    user_id: int,
    creator: User = Depends(require_creator),
    db: Session = Depends(get_db),
):
    """
    Set ``disabled_at``.  Password, 2FA and passkey logins are refused from
    then on, and existing sessions stop resolving to a user.
    """
    target = _target(db, user_id)
    if target.role == "creator":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="The creator cannot be disabled")

    if not target.disabled_at:
        target.disabled_at = utcnow()
        db.commit()
        logger.info("user disabled | by=%s target=%s", creator.id, user_id)
    return {"ok": True}
