"""
Authentication dependencies for FastAPI endpoints.

- Extracting and verifying the Bearer session token
- Loading the caller's account and checking the token's role is still current
- Restricting endpoints to given roles

Example usage:
    from transit_api.core.dependencies.auth import CurrentAccount, AdminAccount

    @router.get("/me")
    async def me(account: CurrentAccount):
        return account

    @router.get("/users")
    async def list_users(admin: AdminAccount):
        ...
"""

from typing import Annotated, Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from transit_api.core.config import auth_logger
from transit_api.core.db.models import Account
from transit_api.core.dependencies.db import get_async_session
from transit_api.core.enums import AccountRole
from transit_api.core.exceptions.types import (
    AuthenticationException,
    ForbiddenException,
)
from transit_api.core.services import Services, TokenService

NO_TOKEN_MESSAGE = "Access denied. No token provided."
ROLE_MISMATCH_MESSAGE = "Invalid token - role mismatch"

# Registers the Bearer scheme in the OpenAPI docs; the header itself is
# parsed below so that a missing token gets our own envelope.
bearer_scheme = HTTPBearer(auto_error=False)


def get_services(request: Request) -> Services:
    """Return the service bundle built by ``create_app``."""
    return request.app.state.services


async def get_current_account(
    request: Request,
    services: Annotated[Services, Depends(get_services)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    _credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ] = None,
) -> Account:
    """
    Authenticate the request from its ``Authorization: Bearer`` header.

    This dependency:
    1. Extracts the token (401 "Access denied. No token provided." if absent)
    2. Verifies signature and expiry (401 "Invalid token" / "Token expired")
    3. Loads the account (401 "User not found")
    4. Compares the token role with the stored role (401 on mismatch)

    The account is also stored on ``request.state.account``.

    Raises:
        AuthenticationException: Any of the failures above.
    """
    token = TokenService.extract_from_header(request.headers.get("Authorization"))
    if token is None:
        raise AuthenticationException(NO_TOKEN_MESSAGE)

    claims = services.tokens.verify(token)

    # Scoped transaction so the route can open its own afterwards
    async with session.begin():
        account = await services.accounts.get(session, claims.account_id)

    if account is None:
        auth_logger.warning(f"Authentication failed: account not found {claims.account_id}")
        raise AuthenticationException("User not found")

    if account.role != claims.role:
        auth_logger.warning(
            f"Authentication failed: role mismatch for {account.id} "
            f"(token={claims.role.value}, stored={account.role.value})"
        )
        raise AuthenticationException(ROLE_MISMATCH_MESSAGE)

    request.state.account = account
    return account


def require_roles(*roles: AccountRole) -> Callable:
    """
    Build a dependency that only lets accounts with one of ``roles`` through.

    Example:
        @router.delete("/{id}", dependencies=[Depends(require_roles(AccountRole.ADMIN))])
    """
    allowed = frozenset(roles)

    async def _check_role(
        account: Annotated[Account, Depends(get_current_account)],
    ) -> Account:
        if account.role not in allowed:
            auth_logger.warning(
                f"Forbidden: {account.role.value} account {account.id} "
                f"needs one of {sorted(r.value for r in allowed)}"
            )
            raise ForbiddenException(
                f"Role '{account.role.value}' is not authorized to access this resource"
            )
        return account

    return _check_role


# Type aliases for cleaner dependency injection
CurrentAccount = Annotated[Account, Depends(get_current_account)]
AdminAccount = Annotated[Account, Depends(require_roles(AccountRole.ADMIN))]
ServicesDep = Annotated[Services, Depends(get_services)]

__all__ = [
    "bearer_scheme",
    "get_services",
    "get_current_account",
    "require_roles",
    "CurrentAccount",
    "AdminAccount",
    "ServicesDep",
    "NO_TOKEN_MESSAGE",
    "ROLE_MISMATCH_MESSAGE",
]
