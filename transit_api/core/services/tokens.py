"""
Session token issuance and verification.

Tokens are HS256 JWTs carrying the account id (``sub``), the account role,
``iat``, ``exp`` and a ``jti``. They are signed, not encrypted: the payload is
readable by the client but cannot be forged without the server secret.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import jwt

from transit_api.core.config import auth_logger
from transit_api.core.enums import AccountRole, TokenType
from transit_api.core.exceptions.types import (
    TokenExpiredException,
    TokenMalformedException,
)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a session token."""

    account_id: UUID
    role: AccountRole
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """
    Issues and verifies signed session tokens.

    The signing secret is required at construction time; a missing secret is
    a startup error, never a per-request one.

    Example:
        >>> tokens = TokenService(secret_key="s3cret", ttl=timedelta(days=30))
        >>> token = tokens.issue(account)
        >>> tokens.verify(token).role
        <AccountRole.STUDENT: 'student'>
    """

    def __init__(
        self,
        secret_key: str | None,
        algorithm: str = "HS256",
        ttl: timedelta = timedelta(days=30),
    ):
        if not secret_key:
            raise ValueError("JWT secret key must be configured")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.ttl = ttl

    def issue(self, account) -> str:
        """
        Create a signed token for ``account``.

        Args:
            account: Any object with ``id`` and ``role`` attributes.

        Returns:
            str: The encoded JWT.
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(account.id),
            "role": AccountRole(account.role).value,
            "type": TokenType.ACCESS.value,
            "iat": now,
            "exp": now + self.ttl,
            "jti": str(uuid4()),
        }
        token = jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
        auth_logger.debug(f"Issued access token for account {account.id}")
        return token

    def verify(self, token: str) -> TokenClaims:
        """
        Check the signature, expiry and claim shape of ``token``.

        Raises:
            TokenExpiredException: The token is past its ``exp``.
            TokenMalformedException: Bad signature, bad structure or bad claims.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"require": ["sub", "role", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredException() from e
        except jwt.InvalidTokenError as e:
            auth_logger.warning(f"Rejected token: {type(e).__name__}")
            raise TokenMalformedException() from e

        if payload.get("type") != TokenType.ACCESS.value:
            raise TokenMalformedException()

        try:
            return TokenClaims(
                account_id=UUID(str(payload["sub"])),
                role=AccountRole(payload["role"]),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise TokenMalformedException() from e

    @staticmethod
    def extract_from_header(header_value: str | None) -> str | None:
        """
        Return the token from an ``Authorization: Bearer <token>`` value.

        Any other shape (missing header, other scheme, empty token, extra
        parts) yields None; deciding what absence means is up to the caller.
        """
        if not header_value or not header_value.startswith(BEARER_PREFIX):
            return None
        token = header_value[len(BEARER_PREFIX):].strip()
        if not token or " " in token:
            return None
        return token


__all__ = ["TokenClaims", "TokenService", "BEARER_PREFIX"]
