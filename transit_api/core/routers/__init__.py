from fastapi import APIRouter

from transit_api.core.routers.accounts import router as accounts_router
from transit_api.core.routers.auth import router as auth_router

api_router = APIRouter(prefix="/api")
api_router.include_router(auth_router)
api_router.include_router(accounts_router)

__all__ = ["api_router", "auth_router", "accounts_router"]
