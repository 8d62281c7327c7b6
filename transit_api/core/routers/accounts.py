"""
Admin account management.

Admins provision driver and admin accounts here (self-registration only
ever produces students). Every endpoint requires an admin token.

All endpoints are mounted under /api/users.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from transit_api.core.config import auth_logger
from transit_api.core.dependencies import (
    AdminAccount,
    ServicesDep,
    get_async_session,
)
from transit_api.core.exceptions.handlers import exception_schema
from transit_api.core.schemas.account import (
    AccountCreateRequest,
    AccountDetail,
    AccountListResponse,
    AccountResponse,
    AccountUpdateRequest,
)
from transit_api.core.schemas.auth import MessageResponse

router = APIRouter(prefix="/users", tags=["Accounts"], responses=exception_schema)


@router.get("", response_model=AccountListResponse, summary="List accounts")
async def list_accounts(
    admin: AdminAccount,
    services: ServicesDep,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> AccountListResponse:
    """All accounts, newest first."""
    async with session.begin():
        accounts = await services.accounts.list(session)
    data = [AccountDetail.model_validate(a) for a in accounts]
    return AccountListResponse(count=len(data), data=data)


@router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
    description="""
Create an account with any role. A bare username such as `driver4` is
completed to `driver4@<institution domain>`.
""",
)
async def create_account(
    request_data: AccountCreateRequest,
    admin: AdminAccount,
    services: ServicesDep,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> AccountResponse:
    async with session.begin():
        account = await services.accounts.create(
            session,
            name=request_data.name,
            email=request_data.email,
            password=request_data.password,
            role=request_data.role,
            complete_username=True,
            commit_self=False,
        )
    auth_logger.info(f"Admin {admin.id} created account {account.id}")
    return AccountResponse(data=AccountDetail.model_validate(account))


@router.put("/{account_id}", response_model=AccountResponse, summary="Update an account")
async def update_account(
    account_id: UUID,
    request_data: AccountUpdateRequest,
    admin: AdminAccount,
    services: ServicesDep,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> AccountResponse:
    """Change name, role and/or password. Demoting the last admin is refused."""
    async with session.begin():
        account = await services.accounts.update_profile(
            session,
            account_id,
            request_data.model_dump(exclude_unset=True),
            commit_self=False,
        )
    auth_logger.info(f"Admin {admin.id} updated account {account_id}")
    return AccountResponse(data=AccountDetail.model_validate(account))


@router.delete("/{account_id}", response_model=MessageResponse, summary="Delete an account")
async def delete_account(
    account_id: UUID,
    admin: AdminAccount,
    services: ServicesDep,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    """Delete an account. The last remaining admin cannot be deleted."""
    async with session.begin():
        await services.accounts.delete(session, account_id, commit_self=False)
    auth_logger.info(f"Admin {admin.id} deleted account {account_id}")
    return MessageResponse(message="User deleted successfully")
