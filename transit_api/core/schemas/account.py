"""Schemas for admin-managed accounts under ``/api/users``."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from transit_api.core.enums import AccountRole


class AccountCreateRequest(BaseModel):
    """
    Admin-created account. ``email`` may be a bare username, in which case
    the institutional domain is appended.
    """

    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    email: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    password: Annotated[str, StringConstraints(min_length=1, max_length=128)]
    role: AccountRole = AccountRole.STUDENT

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Route 4 Driver",
                "email": "driver4",
                "password": "drive-safe-4",
                "role": "driver",
            }
        }
    )


class AccountUpdateRequest(BaseModel):
    """Partial update. The email cannot be changed."""

    name: Annotated[
        str | None, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)
    ] = None
    password: Annotated[str | None, StringConstraints(min_length=1, max_length=128)] = None
    role: AccountRole | None = None

    model_config = ConfigDict(extra="forbid")


class AccountDetail(BaseModel):
    id: UUID
    name: str
    email: str
    role: AccountRole
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AccountResponse(BaseModel):
    success: bool = True
    data: AccountDetail


class AccountListResponse(BaseModel):
    success: bool = True
    count: int = Field(description="Number of accounts returned")
    data: list[AccountDetail]


__all__ = [
    "AccountCreateRequest",
    "AccountUpdateRequest",
    "AccountDetail",
    "AccountResponse",
    "AccountListResponse",
]
