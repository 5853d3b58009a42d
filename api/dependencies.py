"""
Shared FastAPI dependencies
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from core.database import async_session_maker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session bound to the reporting engine"""
    async with async_session_maker() as session:
        yield session
