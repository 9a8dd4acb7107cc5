# ============================================================================
# File: ingestion/runner.py
# Description: Page-by-page Growi sync orchestrator
# ============================================================================
"""
Growi Sync Runner - drives fetch → normalize → upsert one page at a time.

This module provides the sync loop with:
- Strictly sequential paging (one request in flight, increasing page order)
- Retry of transient partner failures through the injected fetcher
- One database transaction per page; committed pages stay durable
- Termination on page budget, empty page, or the partner's pagination meta
- Fixed pacing between pages, skipped after the last page
"""

from datetime import datetime, timezone
from typing import List, Optional
import asyncio
import enum
import logging

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, settings as default_settings
from core.exceptions import ConfigurationError, SyncException
from ingestion.extractors.growi_client import (
    GrowiPageFetcher,
    GrowiPageRequest,
    GrowiPrivateClient,
    GrowiPublicClient,
    RetryingPageFetcher,
    retry_policy_from_settings,
)
from ingestion.loaders.postgres_loader import GrowiPostLoader
from ingestion.retry import Sleep
from ingestion.transformers.normalizer import GrowiNormalizer
from models.base import SyncStatus
from schemas.growi import GrowiPage, PageVariant
from schemas.normalized import GrowiPostRow
from schemas.sync import SyncRunConfig, SyncSummary

logger = logging.getLogger(__name__)


class SyncState(str, enum.Enum):
    IDLE = "idle"
    FETCHING_PAGE = "fetching_page"
    NORMALIZING = "normalizing"
    UPSERTING = "upserting"
    DONE = "done"
    FAILED = "failed"


class GrowiSyncRunner:
    """
    Growi sync orchestrator.

    Responsibilities:
    - Page through the partner API via a RetryingPageFetcher
    - Hand each page to the normalizer and each batch of rows to the loader
    - Decide when the sync is complete
    - Pace requests and accumulate the run summary

    A failed run raises the causal error and returns no summary. Pages
    committed before the failure remain in the database; re-running the same
    window converges because the loader upserts.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        fetcher: RetryingPageFetcher,
        loader: Optional[GrowiPostLoader] = None,
        page_delay: float = 0.0,
        sleep: Sleep = asyncio.sleep
    ):
        self.db = db_session
        self.fetcher = fetcher
        self.loader = loader or GrowiPostLoader(db_session)
        self.page_delay = page_delay
        self.sleep = sleep
        self.state = SyncState.IDLE

    def _transition(self, state: SyncState) -> None:
        logger.debug(f"Growi sync state {self.state.value} -> {state.value}")
        self.state = state

    def _log_retry(self, attempt: int, error: BaseException, delay: float) -> None:
        logger.warning(
            f"Growi {self.fetcher.variant.value} page request failed on attempt {attempt} "
            f"({getattr(error, 'message', error)}). Retrying in {delay:.1f}s"
        )

    async def run(self, config: SyncRunConfig) -> SyncSummary:
        """
        Run one sync over ``config``'s date window.

        Returns:
            SyncSummary with pages/rows fetched and the partner's totals as
            reported on the last page

        Raises:
            ConfigurationError: config variant does not match the fetcher
            ExtractionError: fatal partner error or exhausted retries
            PersistenceError: a page's upsert transaction failed
            SyncException: any other unexpected failure, wrapped
        """
        if config.variant != self.fetcher.variant:
            raise ConfigurationError(
                "Sync config variant does not match the page fetcher",
                context={
                    "config_variant": config.variant.value,
                    "fetcher_variant": self.fetcher.variant.value,
                }
            )

        normalizer = GrowiNormalizer(config.variant)
        page_number = 1
        pages_fetched = 0
        rows_fetched = 0
        rows_upserted = 0
        row_count = 0
        page_count = 0

        logger.info(
            f"Starting Growi {config.variant.value} sync "
            f"{config.start_date} - {config.end_date} (per_page={config.per_page}, "
            f"max_pages={config.max_pages})"
        )

        try:
            while True:
                self._transition(SyncState.FETCHING_PAGE)
                page = await self.fetcher.fetch_page(
                    GrowiPageRequest(
                        start_date=config.start_date,
                        end_date=config.end_date,
                        page=page_number,
                        per_page=config.per_page,
                        limit=config.effective_limit,
                        include_gmv=config.include_gmv,
                    ),
                    on_retry=self._log_retry,
                )

                self._transition(SyncState.NORMALIZING)
                rows = normalizer.normalize_page(page)
                pages_fetched += 1
                rows_fetched += len(rows)
                row_count = page.row_count
                page_count = page.page_count

                self._transition(SyncState.UPSERTING)
                rows_upserted += await self.loader.upsert_page(rows)

                logger.info(
                    f"Growi {config.variant.value} page {page_number}: "
                    f"{len(rows)} rows (partner reports {row_count} rows / {page_count} pages)"
                )

                stop_reason = self._stop_reason(config, pages_fetched, rows, page, page_number)
                if stop_reason:
                    logger.info(f"Growi {config.variant.value} sync complete: {stop_reason}")
                    break

                page_number = page.next_page_number()
                await self.sleep(self.page_delay)

        except SyncException as e:
            self._transition(SyncState.FAILED)
            logger.error(
                f"Growi {config.variant.value} sync failed on page {page_number}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            raise

        except Exception as e:
            self._transition(SyncState.FAILED)
            logger.exception("Unexpected error in Growi sync")
            raise SyncException(
                "Unexpected error in Growi sync",
                context={
                    "variant": config.variant.value,
                    "page": page_number,
                    "pages_fetched": pages_fetched,
                    "rows_fetched": rows_fetched,
                },
                original_exception=e
            )

        self._transition(SyncState.DONE)
        return SyncSummary(
            variant=config.variant,
            status=SyncStatus.SUCCESS,
            start_date=config.start_date,
            end_date=config.end_date,
            per_page=config.per_page,
            limit=config.effective_limit if config.variant is PageVariant.PUBLIC else None,
            include_gmv=config.include_gmv if config.variant is PageVariant.PUBLIC else None,
            pages_fetched=pages_fetched,
            rows_fetched=rows_fetched,
            rows_upserted=rows_upserted,
            row_count=row_count,
            page_count=page_count,
            completed_at=datetime.now(timezone.utc),
        )

    @staticmethod
    def _stop_reason(
        config: SyncRunConfig,
        pages_fetched: int,
        rows: List[GrowiPostRow],
        page: GrowiPage,
        page_number: int
    ) -> Optional[str]:
        """Termination checks, in priority order. None means keep paging."""
        if config.max_pages is not None and pages_fetched >= config.max_pages:
            return f"page budget of {config.max_pages} reached"
        if not rows:
            return "empty page"
        if not page.has_more_pages():
            return "partner reports no further pages"
        if page.next_page_number() <= page_number:
            logger.warning(
                f"Partner pointed back to page {page.next_page_number()} from page {page_number}"
            )
            return "next page does not advance"
        return None


def build_page_fetcher(
    variant: PageVariant,
    config: Settings = default_settings,
    client: Optional[httpx.AsyncClient] = None
) -> GrowiPageFetcher:
    """Build the single-page client for ``variant``; raises ConfigurationError without a credential."""
    if variant is PageVariant.PRIVATE:
        return GrowiPrivateClient.from_settings(config, client=client)
    return GrowiPublicClient.from_settings(config, client=client)


def page_delay_for(variant: PageVariant, config: Settings = default_settings) -> float:
    if variant is PageVariant.PRIVATE:
        return config.GROWI_PRIVATE_PAGE_DELAY
    return config.GROWI_PUBLIC_PAGE_DELAY


async def sync_growi_posts(
    db_session: AsyncSession,
    run_config: SyncRunConfig,
    config: Settings = default_settings,
    client: Optional[httpx.AsyncClient] = None,
    sleep: Sleep = asyncio.sleep
) -> SyncSummary:
    """
    Wire up fetcher, retry policy, loader and pacing from settings and run
    one sync. Used by the API, the scheduler and the CLI.
    """
    fetcher = build_page_fetcher(run_config.variant, config, client=client)
    retrying = RetryingPageFetcher(fetcher, retry_policy_from_settings(config), sleep=sleep)
    try:
        runner = GrowiSyncRunner(
            db_session,
            retrying,
            page_delay=page_delay_for(run_config.variant, config),
            sleep=sleep,
        )
        return await runner.run(run_config)
    finally:
        await retrying.aclose()
