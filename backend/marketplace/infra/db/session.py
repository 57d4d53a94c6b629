"""Request-scoped database sessions."""
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.infra.db import base


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield a session for one request; rolls back anything left uncommitted."""
    if base.AsyncSessionLocal is None:
        raise RuntimeError("Database engine is not configured (running under pytest without an override?)")
    async with base.AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()
