from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from transit_api.core.db import AsyncSessionLocal


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield one session per request and close it when the request is done.

    Yields:
        AsyncSession: An async session bound to the application engine.
    """
    async with AsyncSessionLocal() as async_session:
        yield async_session
