"""
FastAPI dependencies shared by the routers
"""

from typing import AsyncIterator, Optional
from fastapi import Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from core.config import settings
from core.database import get_session


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped database session"""
    async for session in get_session():
        yield session


async def verify_api_key(x_api_key: Optional[str] = Header(None)) -> None:
    """
    Guard the admin sync triggers.

    With no API_KEY configured the triggers are open (local development).
    """
    expected = settings.API_KEY
    if not expected:
        return
    if x_api_key != expected:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing X-API-Key header"
        )
