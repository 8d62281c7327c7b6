"""
Test suite for the database session dependency.

Run tests:
    pytest tests/core/dependencies/test_db.py -v
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from transit_api.core.dependencies import get_async_session


class TestGetAsyncSession:

    @pytest.mark.asyncio
    async def test_yields_one_session_then_stops(self):
        generator = get_async_session()
        session = await generator.__anext__()

        assert isinstance(session, AsyncSession)
        assert not session.in_transaction()

        with pytest.raises(StopAsyncIteration):
            await generator.__anext__()

    @pytest.mark.asyncio
    async def test_fresh_session_per_request(self):
        first = get_async_session()
        second = get_async_session()

        try:
            assert await first.__anext__() is not await second.__anext__()
        finally:
            await first.aclose()
            await second.aclose()
