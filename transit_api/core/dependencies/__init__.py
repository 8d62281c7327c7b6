"""
Shared dependencies for FastAPI endpoints.

"""

from transit_api.core.dependencies.auth import (
    get_current_account,
    get_services,
    require_roles,
    AdminAccount,
    CurrentAccount,
    ServicesDep,
    bearer_scheme,
)
from transit_api.core.dependencies.db import get_async_session

__all__ = [
    "get_current_account",
    "get_services",
    "require_roles",
    "AdminAccount",
    "CurrentAccount",
    "ServicesDep",
    "bearer_scheme",
    "get_async_session",
]
