"""
Authentication router.

This module provides endpoints for:
- Starting self-registration (email OTP)
- Completing self-registration with the OTP
- Email + password login
- Reading the caller's own profile

All endpoints are mounted under /api/auth.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from transit_api.core.dependencies import (
    CurrentAccount,
    ServicesDep,
    get_async_session,
)
from transit_api.core.exceptions.handlers import exception_schema
from transit_api.core.schemas.auth import (
    AccountProfile,
    AuthResponse,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    SendOTPRequest,
)
from transit_api.core.services.auth import AuthResult

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _auth_response(result: AuthResult) -> AuthResponse:
    account = result.account
    return AuthResponse(
        token=result.token,
        id=account.id,
        name=account.name,
        email=account.email,
        role=account.role,
    )


@router.post(
    "/send-otp",
    response_model=MessageResponse,
    summary="Send registration OTP",
    description="""
## Start Self-Registration

Emails a 6-digit verification code to an institutional address that is not
registered yet. Any earlier code for the same address stops working.

| Field | Type | Required | Description |
|-------|------|----------|-------------|
| `email` | string | ✅ | Institutional email |
| `name` | string | ✅ | Full name used in the email greeting |

The code expires **30 minutes** after it is sent and allows **5** attempts.

### Error Responses

| Status | Reason |
|--------|--------|
| `400` | Missing field, malformed email or wrong domain |
| `409` | Email already registered |
| `500` | The email could not be delivered (no code is left behind) |
""",
    responses=exception_schema,
)
async def send_otp(
    request_data: SendOTPRequest,
    services: ServicesDep,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    """Issue an OTP for ``request_data.email``. The ledger commits its own writes."""
    await services.auth.start_registration(
        session, name=request_data.name, email=request_data.email
    )
    return MessageResponse(message="OTP sent successfully")


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Complete registration",
    description="""
## Complete Self-Registration

Redeems the emailed code and creates a **student** account. The response
carries a session token, so the client is signed in right away.

| Field | Type | Required | Description |
|-------|------|----------|-------------|
| `name` | string | ✅ | Full name |
| `email` | string | ✅ | Email the code was sent to |
| `password` | string | ✅ | At least 6 characters |
| `otp` | string | ✅ | 6-digit code |

### Error Responses

| Status | Reason |
|--------|--------|
| `400` | Invalid input, wrong code, or attempts exhausted |
| `404` | No live code for this email (never sent, used or expired) |
| `409` | Email already registered |
""",
    responses=exception_schema,
)
async def register(
    request_data: RegisterRequest,
    services: ServicesDep,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> AuthResponse:
    result = await services.auth.complete_registration(
        session,
        name=request_data.name,
        email=request_data.email,
        password=request_data.password,
        otp=request_data.otp,
    )
    return _auth_response(result)


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log in with email and password",
    description="""
## Log In

Returns a session token and the account profile. Send the token on later
requests as `Authorization: Bearer <token>`.

### Error Responses

| Status | Reason |
|--------|--------|
| `400` | Missing email or password |
| `401` | Invalid credentials |
""",
    responses=exception_schema,
)
async def login(
    request_data: LoginRequest,
    services: ServicesDep,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> AuthResponse:
    async with session.begin():
        result = await services.auth.login(
            session, email=request_data.email, password=request_data.password
        )
    return _auth_response(result)


@router.get(
    "/me",
    response_model=MeResponse,
    summary="Current account",
    responses=exception_schema,
)
async def me(account: CurrentAccount) -> MeResponse:
    """Return the authenticated caller's profile."""
    return MeResponse(data=AccountProfile.model_validate(account))
