"""
OTP ledger for email verification during self-registration.

A challenge is a 6-digit code, stored as an HMAC-SHA256 digest, that lives
for a fixed window from issue and tolerates a fixed number of wrong guesses.
Every outcome other than "wrong guess with attempts left" removes the row.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from transit_api.core.config import otp_logger
from transit_api.core.db.crud import otp_challenge_db
from transit_api.core.db.models import OTPChallenge
from transit_api.core.exceptions.types import (
    EmailDeliveryException,
    OTPInvalidException,
    OTPNotFoundException,
    TooManyAttemptsException,
)
from transit_api.core.utils import (
    generate_otp_code,
    hmac_hash_otp,
    hmac_verify_otp,
    mask_otp,
)


class OTPNotifier(Protocol):
    """Anything that can deliver a verification code to an inbox."""

    async def send_otp_email(self, to: str, name: str, code: str) -> bool: ...


class OTPLedger:
    """
    Issues and verifies email OTP challenges.

    Writes commit immediately: an attempt counted against a challenge must
    survive the error response that reports it.
    """

    def __init__(
        self,
        hmac_secret: str,
        notifier: OTPNotifier,
        expiry_minutes: int = 30,
        max_attempts: int = 5,
    ):
        if not hmac_secret:
            raise ValueError("OTP HMAC secret must be configured")
        self._hmac_secret = hmac_secret
        self.notifier = notifier
        self.expiry = timedelta(minutes=expiry_minutes)
        self.max_attempts = max_attempts

    async def issue(self, session: AsyncSession, email: str, name: str) -> OTPChallenge:
        """
        Replace any existing challenge for ``email`` and deliver a fresh code.

        Args:
            session: The async database session.
            email: Normalized address to verify.
            name: Display name used in the email greeting.

        Returns:
            OTPChallenge: The persisted challenge (digest only).

        Raises:
            ConflictException: A concurrent issue for the same email won the insert.
            EmailDeliveryException: The code could not be delivered; the
                challenge has been removed again.
        """
        await otp_challenge_db.delete_for_email(session, email, commit_self=False)

        code = generate_otp_code()
        now = datetime.now(timezone.utc)
        challenge = await otp_challenge_db.create(
            session=session,
            data={
                "email": email,
                "code_hash": hmac_hash_otp(code, self._hmac_secret),
                "attempts": 0,
                "created_at": now,
                "expires_at": now + self.expiry,
            },
        )
        otp_logger.info(f"OTP {mask_otp(code)} issued for {email}")

        try:
            delivered = await self.notifier.send_otp_email(email, name, code)
        except Exception as e:
            otp_logger.error(f"OTP notifier raised for {email}: {type(e).__name__}")
            await otp_challenge_db.delete(session, challenge.id)
            raise EmailDeliveryException() from e

        if not delivered:
            otp_logger.warning(f"OTP email not delivered to {email}, challenge dropped")
            await otp_challenge_db.delete(session, challenge.id)
            raise EmailDeliveryException()

        return challenge

    async def verify(self, session: AsyncSession, email: str, code: str) -> bool:
        """
        Check ``code`` against the live challenge for ``email``.

        Returns:
            bool: True on match. The challenge is consumed.

        Raises:
            OTPNotFoundException: No live challenge (never issued, consumed or expired).
            TooManyAttemptsException: The attempt cap is reached; the challenge is gone.
            OTPInvalidException: Wrong code, attempts remain.
        """
        challenge = await otp_challenge_db.get_live_for_email(
            session, email, for_update=True
        )
        if challenge is None:
            raise OTPNotFoundException()

        attempts = await otp_challenge_db.increment_attempts(
            session, challenge.id, self.max_attempts
        )
        if attempts is None:
            # Already at the cap, or consumed or expired by another request
            if await otp_challenge_db.delete_exhausted(
                session, challenge.id, self.max_attempts
            ):
                otp_logger.warning(f"OTP attempts exhausted for {email}")
                raise TooManyAttemptsException()
            raise OTPNotFoundException()

        if not hmac_verify_otp(code, challenge.code_hash, self._hmac_secret):
            if attempts >= self.max_attempts:
                await otp_challenge_db.delete(session, challenge.id)
                otp_logger.warning(f"OTP attempts exhausted for {email}")
                raise TooManyAttemptsException()
            otp_logger.info(
                f"Invalid OTP for {email} (attempt {attempts}/{self.max_attempts})"
            )
            raise OTPInvalidException()

        # Only the request whose DELETE removes the row redeems the code
        if not await otp_challenge_db.delete(session, challenge.id):
            raise OTPNotFoundException()
        otp_logger.info(f"OTP verified for {email}")
        return True

    async def purge_expired(self, session: AsyncSession) -> int:
        """Delete every challenge past its expiry. Returns the number removed."""
        removed = await otp_challenge_db.delete_expired(session)
        if removed:
            otp_logger.info(f"Purged {removed} expired OTP challenge(s)")
        return removed


__all__ = ["OTPLedger", "OTPNotifier"]
