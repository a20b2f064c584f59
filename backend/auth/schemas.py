# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the auth endpoints."""

from pydantic import BaseModel, ConfigDict, Field

# Deliberately loose: the mail server is the real validator
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# -- Requests --------------------------------------------------------------


class RegisterRequest(_CamelModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    username: str = Field(min_length=3, max_length=32)
    password: str = Field(min_length=8, max_length=128)


class LoginRequest(_CamelModel):
    email_or_username: str = Field(alias="emailOrUsername", min_length=3)
    password: str = Field(min_length=8, max_length=128)


class ResendVerificationRequest(_CamelModel):
    email_or_username: str = Field(alias="emailOrUsername", min_length=3)


class ForgotPasswordRequest(_CamelModel):
    email: str = Field(pattern=EMAIL_PATTERN)


class ResetPasswordRequest(_CamelModel):
    token: str = Field(min_length=10)
    password: str = Field(min_length=8, max_length=128)


class TwoFactorVerifyRequest(_CamelModel):
    challenge_id: str = Field(alias="challengeId", min_length=10)
    code: str = Field(pattern=r"^\d{6}$")


class TwoFactorResendRequest(_CamelModel):
    challenge_id: str = Field(alias="challengeId", min_length=10)


class PasswordConfirmRequest(_CamelModel):
    """Body of 2fa-enable / 2fa-disable: the current password, re-checked."""
    password: str = Field(min_length=8, max_length=128)


# -- Responses -------------------------------------------------------------


class OkResponse(BaseModel):
    ok: bool = True


class SessionUserResponse(BaseModel):
    id: int
    email: str
    username: str


class TwoFactorRequiredResponse(_CamelModel):
    two_factor_required: bool = Field(default=True, alias="twoFactorRequired")
    challenge_id: str = Field(alias="challengeId")


class TwoFactorStatusResponse(BaseModel):
    enabled: bool
