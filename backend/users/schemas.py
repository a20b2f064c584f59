# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the profile endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from auth.schemas import EMAIL_PATTERN


# -- Requests --------------------------------------------------------------


class UpdateProfileRequest(BaseModel):
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    username: Optional[str] = Field(default=None, min_length=3, max_length=32)

    @model_validator(mode="after")
    def _at_least_one_field(self):
        if self.email is None and self.username is None:
            raise ValueError("Nothing to update")
        return self


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(alias="currentPassword", min_length=1)
    new_password: str = Field(alias="newPassword", min_length=8, max_length=128)
    confirm_password: str = Field(alias="confirmPassword", min_length=1)


# -- Responses -------------------------------------------------------------


class MeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    email: str
    username: str
    role: str
    pending_email: Optional[str] = Field(default=None, alias="pendingEmail")
    created_at: datetime = Field(alias="createdAt")


class UpdateProfileResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    requires_verification: bool = Field(alias="requiresVerification")
