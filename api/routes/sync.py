"""
Admin endpoints that trigger a Growi sync run
"""

from typing import Optional
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from api.dependencies import get_db, verify_api_key
from core.config import settings
from ingestion.runner import sync_growi_posts
from schemas.api import SyncRequest
from schemas.growi import PageVariant
from schemas.sync import SyncRunConfig, SyncSummary
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/sync/growi",
    tags=["Sync"],
    dependencies=[Depends(verify_api_key)]
)


def build_run_config(variant: PageVariant, body: SyncRequest) -> SyncRunConfig:
    """Turn a request body into a run config, defaulting to the trailing window."""
    options = {
        "per_page": body.per_page if body.per_page is not None else settings.SYNC_PER_PAGE,
        "max_pages": body.max_pages if body.max_pages is not None else settings.SYNC_MAX_PAGES,
    }
    if variant is PageVariant.PUBLIC:
        options["limit"] = body.limit
        options["include_gmv"] = body.include_gmv

    if body.start_date is None and body.end_date is None:
        return SyncRunConfig.trailing_window(
            settings.SYNC_LOOKBACK_DAYS, variant=variant, **options
        )
    return SyncRunConfig.build(
        variant=variant,
        start_date=body.start_date,
        end_date=body.end_date,
        **options
    )


async def _run(variant: PageVariant, body: SyncRequest, request: Request, db: AsyncSession) -> SyncSummary:
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")
    run_config = build_run_config(variant, body)
    logger.info(
        f"[{request_id}] POST /sync/growi/{variant.value} - "
        f"{run_config.start_date} - {run_config.end_date}, per_page={run_config.per_page}"
    )
    return await sync_growi_posts(db, run_config)


@router.post("/private", response_model=SyncSummary)
async def sync_private(
    request: Request,
    body: Optional[SyncRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """
    Sync the organization's user contents for a date window.

    Configuration problems return 400, partner failures 502 and database
    failures 500 (see the exception handlers in api.main).
    """
    return await _run(PageVariant.PRIVATE, body or SyncRequest(), request, db)


@router.post("/public", response_model=SyncSummary)
async def sync_public(
    request: Request,
    body: Optional[SyncRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """Sync the public top-posts-by-views ranking for a date window."""
    return await _run(PageVariant.PUBLIC, body or SyncRequest(), request, db)
