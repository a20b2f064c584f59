# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Authenticator ORM model – one registered WebAuthn credential (passkey)."""

from sqlalchemy import Column, Integer, BigInteger, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class Authenticator(Base):
    __tablename__ = "authenticators"

    # base64url( credential id ) exactly as the browser reports it in ``id``
    id = Column(String(255), primary_key=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # base64( COSE public key ) – decode with passkeys.ceremony.decode_public_key
    public_key = Column(Text, nullable=False)
    # Signature counter; only ever moves forward
    counter = Column(BigInteger, nullable=False, default=0)
    device_type = Column(String(32), nullable=False)   # single_device / multi_device
    backed_up = Column(Boolean, nullable=False, default=False)
    transports = Column(String(255), nullable=True)    # comma-joined, e.g. "internal,hybrid"
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="authenticators")
