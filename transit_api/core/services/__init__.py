from dataclasses import dataclass
from datetime import timedelta

from transit_api.core.config import Settings
from transit_api.core.services.accounts import AccountStore
from transit_api.core.services.auth import AuthResult, AuthService
from transit_api.core.services.brevo import BrevoService
from transit_api.core.services.otp import OTPLedger, OTPNotifier
from transit_api.core.services.template import Renderer
from transit_api.core.services.tokens import TokenClaims, TokenService


@dataclass(frozen=True)
class Services:
    """The service objects one application instance works with."""

    accounts: AccountStore
    otp_ledger: OTPLedger
    tokens: TokenService
    auth: AuthService


def build_services(settings: Settings, notifier: OTPNotifier | None = None) -> Services:
    """
    Wire the services from ``settings``.

    Args:
        settings: Application settings.
        notifier: OTP delivery channel. Defaults to ``BrevoService``.

    Raises:
        ValueError: A required secret is missing.
    """
    accounts = AccountStore(
        email_domain=settings.email_domain,
        min_password_length=settings.PASSWORD_MIN_LENGTH,
    )
    otp_ledger = OTPLedger(
        hmac_secret=settings.OTP_HMAC_SECRET,
        notifier=notifier or BrevoService,
        expiry_minutes=settings.OTP_EXPIRY_MINUTES,
        max_attempts=settings.OTP_MAX_ATTEMPTS,
    )
    tokens = TokenService(
        secret_key=settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        ttl=timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS),
    )
    return Services(
        accounts=accounts,
        otp_ledger=otp_ledger,
        tokens=tokens,
        auth=AuthService(accounts=accounts, otp_ledger=otp_ledger, tokens=tokens),
    )


__all__ = [
    "AccountStore",
    "AuthResult",
    "AuthService",
    "BrevoService",
    "OTPLedger",
    "OTPNotifier",
    "Renderer",
    "Services",
    "TokenClaims",
    "TokenService",
    "build_services",
]
