# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""User ORM model – identity plus every credential/token field the auth flows use."""

from sqlalchemy import Column, Integer, String, Boolean, Enum, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base

ROLES = ("user", "moderator", "creator")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    # Argon2id encoded hash (salt and cost parameters embedded)
    password_hash = Column(String(255), nullable=False)
    # "creator" is the protected super-role; no endpoint can assign or revoke it
    role = Column(Enum(*ROLES, name="user_role"), nullable=False, default="user")
    disabled_at = Column(DateTime(timezone=True), nullable=True)

    # -- Email verification --------------------------------------------
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    verification_token = Column(String(255), nullable=True, index=True)
    verification_expires_at = Column(DateTime(timezone=True), nullable=True)
    # New address awaiting verification after a profile e-mail change
    pending_email = Column(String(255), nullable=True)

    # -- Password reset ------------------------------------------------
    reset_token = Column(String(255), nullable=True, index=True)
    reset_expires_at = Column(DateTime(timezone=True), nullable=True)

    # -- Two-factor (e-mailed code) --------------------------------------
    two_factor_enabled = Column(Boolean, nullable=False, default=False)
    two_factor_token = Column(String(64), nullable=True, index=True)   # challenge id
    two_factor_code_hash = Column(String(255), nullable=True)
    two_factor_expires_at = Column(DateTime(timezone=True), nullable=True)
    two_factor_attempts = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    authenticators = relationship(
        "Authenticator",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


# Registered here so the "Authenticator" relationship target always resolves
from models.authenticator import Authenticator  # noqa: E402, F401
