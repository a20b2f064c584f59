# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the creator-only admin endpoints."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# "creator" is intentionally absent: it can be neither granted nor taken away
AssignableRole = Literal["user", "moderator"]


# -- Requests --------------------------------------------------------------


class ChangeRoleRequest(BaseModel):
    role: AssignableRole


class BulkChangeRoleRequest(BaseModel):
    ids: List[int] = Field(min_length=1)
    role: AssignableRole


# -- Responses -------------------------------------------------------------


class UserRow(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    email: str
    username: str
    role: str
    email_verified_at: Optional[datetime] = Field(default=None, alias="emailVerifiedAt")
    disabled_at: Optional[datetime] = Field(default=None, alias="disabledAt")
    two_factor_enabled: bool = Field(alias="twoFactorEnabled")
    created_at: datetime = Field(alias="createdAt")


class UserListResponse(BaseModel):
    """One page of the user list."""

    model_config = ConfigDict(populate_by_name=True)

    items: List[UserRow]
    total: int
    page: int
    page_size: int = Field(alias="pageSize")


class BulkChangeRoleResponse(BaseModel):
    ok: bool = True
    updated: int
