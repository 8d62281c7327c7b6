"""
Registration and login flows.

Self-registration is a two-step handshake:

1. ``start_registration`` checks the email and issues an OTP challenge.
2. ``complete_registration`` redeems the code and creates a STUDENT account.

Login exchanges email + password for a session token. Unknown email and
wrong password are indistinguishable to the caller.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from transit_api.core.config import auth_logger
from transit_api.core.db.models import Account
from transit_api.core.enums import AccountRole
from transit_api.core.exceptions.types import (
    AccountAlreadyExistsException,
    InvalidCredentialsException,
)
from transit_api.core.services.accounts import AccountStore
from transit_api.core.services.otp import OTPLedger
from transit_api.core.services.tokens import TokenService
from transit_api.core.utils import verify_password


@dataclass(frozen=True)
class AuthResult:
    token: str
    account: Account


class AuthService:
    def __init__(self, accounts: AccountStore, otp_ledger: OTPLedger, tokens: TokenService):
        self.accounts = accounts
        self.otp_ledger = otp_ledger
        self.tokens = tokens

    async def start_registration(self, session: AsyncSession, name: str, email: str) -> str:
        """
        Send a verification code to a not-yet-registered institutional email.

        Returns:
            str: The normalized email the code was sent to.

        Raises:
            ValidationException: Bad email or empty name.
            AccountAlreadyExistsException: The email is already registered.
            EmailDeliveryException: The code could not be delivered.
        """
        email = self.accounts.validate_email(email)
        name = self.accounts.validate_name(name)

        if await self.accounts.find_by_email(session, email) is not None:
            raise AccountAlreadyExistsException()

        await self.otp_ledger.issue(session, email, name)
        return email

    async def complete_registration(
        self,
        session: AsyncSession,
        name: str,
        email: str,
        password: str,
        otp: str,
    ) -> AuthResult:
        """
        Redeem an OTP and create a student account.

        Input is validated before the code is checked so a typo in the
        password does not burn an attempt.

        Raises:
            ValidationException: Bad email, name or password.
            AccountAlreadyExistsException: The email was registered meanwhile.
            OTPNotFoundException, TooManyAttemptsException, OTPInvalidException:
                From the OTP ledger, unchanged.
        """
        email = self.accounts.validate_email(email)
        name = self.accounts.validate_name(name)
        self.accounts.validate_password(password)

        if await self.accounts.find_by_email(session, email) is not None:
            raise AccountAlreadyExistsException()

        await self.otp_ledger.verify(session, email, otp)

        account = await self.accounts.create(
            session,
            name=name,
            email=email,
            password=password,
            role=AccountRole.STUDENT,
        )
        auth_logger.info(f"Registration completed for {account.email}")
        return AuthResult(token=self.tokens.issue(account), account=account)

    async def login(self, session: AsyncSession, email: str, password: str) -> AuthResult:
        """
        Authenticate with email and password.

        Raises:
            InvalidCredentialsException: Unknown email or wrong password.
        """
        account = await self.accounts.find_by_email(session, email or "")
        hashed = account.password_hash if account is not None else None

        if not verify_password(password, hashed) or account is None:
            auth_logger.warning("Failed login attempt")
            raise InvalidCredentialsException()

        auth_logger.info(f"Login succeeded for account {account.id}")
        return AuthResult(token=self.tokens.issue(account), account=account)


__all__ = ["AuthResult", "AuthService"]
