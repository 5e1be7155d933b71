from typing import AsyncGenerator

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import get_settings
from app.database import get_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()


def get_db_session_factory() -> async_sessionmaker:
    """Dependency for code that opens one session per unit of work."""
    return get_session_factory()


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Dependency for the outbound marketplace HTTP client."""
    settings = get_settings()
    async with httpx.AsyncClient(timeout=settings.EBAY_HTTP_TIMEOUT_SECONDS) as client:
        yield client
