"""
Health check endpoint with database and sync freshness
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select
from api.dependencies import get_db
from core.database import ping
from schemas.api import HealthCheckResponse
from models.growi_post import GrowiPost
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Number of tracked Growi posts and when one was last seen
    """
    tracked_posts = 0
    last_seen_at = None

    db_connected = await ping(db)

    if db_connected:
        try:
            result = await db.execute(
                select(func.count(GrowiPost.growi_post_id), func.max(GrowiPost.last_seen_at))
            )
            tracked_posts, last_seen_at = result.one()
        except Exception as e:
            logger.error(f"Failed to read Growi post stats: {str(e)}")

    return HealthCheckResponse(
        status="healthy",  # replaced by the validator
        database_connected=db_connected,
        tracked_posts=tracked_posts or 0,
        last_seen_at=last_seen_at,
    )
