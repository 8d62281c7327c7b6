"""
OTP challenge model for email verification during self-registration.

"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from transit_api.core.db.models.base import BaseModel


class OTPChallenge(BaseModel):
    """
    A pending email-verification code.

    Codes are stored as HMAC-SHA256 digests, never in clear. There is at most
    one challenge per email (unique index); issuing a new one replaces the
    old row. A challenge is deleted when it is consumed, when its attempt cap
    is hit, or once it is past ``expires_at``.

    Attributes:
        email: Address being verified (not yet an account).
        code_hash: HMAC-SHA256 hex digest of the 6-digit code.
        attempts: Verification attempts made so far (0..max).
        expires_at: Absolute expiry, ``created_at`` plus the OTP lifetime.
    """

    __tablename__ = "otp_challenges"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )

    code_hash: Mapped[str] = mapped_column(
        String(64),  # SHA256 hex digest is 64 characters
        nullable=False,
    )

    attempts: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )


__all__ = ["OTPChallenge"]
