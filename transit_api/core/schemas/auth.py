"""
Authentication schemas for request validation and response serialization.

Email format, institutional domain and password length are checked by the
account store, not here, so that the same rules and messages apply to every
entry point.
"""

from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from transit_api.core.enums import AccountRole


# =============================================================================
# Type Aliases for Reusable Annotated Types
# =============================================================================

EmailField = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=255),
    Field(description="Institutional email address"),
]

NameField = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=255),
    Field(description="Full name"),
]

PasswordField = Annotated[
    str,
    StringConstraints(min_length=1, max_length=128),
    Field(description="Password"),
]

OTPCodeStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, pattern=r"^\d{6}$"),
    Field(description="6-digit verification code"),
]


# =============================================================================
# Request Schemas
# =============================================================================


class SendOTPRequest(BaseModel):
    """Request schema for starting self-registration."""

    email: EmailField
    name: NameField

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"email": "ua622339@cfd.nu.edu.pk", "name": "Ali Khan"}
        }
    )


class RegisterRequest(BaseModel):
    """Request schema for completing self-registration with an OTP."""

    name: NameField
    email: EmailField
    password: PasswordField
    otp: OTPCodeStr

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Ali Khan",
                "email": "ua622339@cfd.nu.edu.pk",
                "password": "bus-pass-42",
                "otp": "482913",
            }
        }
    )


class LoginRequest(BaseModel):
    """Request schema for email + password login."""

    email: EmailField
    password: PasswordField


# =============================================================================
# Response Schemas
# =============================================================================


class MessageResponse(BaseModel):
    """Generic success envelope with a message."""

    success: bool = True
    message: str


class AccountProfile(BaseModel):
    """Public view of an account. Never carries the password hash."""

    id: UUID
    name: str
    email: str
    role: AccountRole

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    """Token plus profile, returned by register and login."""

    success: bool = True
    token: str
    id: UUID
    name: str
    email: str
    role: AccountRole


class MeResponse(BaseModel):
    success: bool = True
    data: AccountProfile


__all__ = [
    "SendOTPRequest",
    "RegisterRequest",
    "LoginRequest",
    "MessageResponse",
    "AccountProfile",
    "AuthResponse",
    "MeResponse",
]
