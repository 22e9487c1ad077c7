"""FastAPI session dependency; tests override it with their own session."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from .db_manager import db_manager


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Per-request session, committed when the request finishes."""
    async for session in db_manager.get_async_session():
        yield session
