import logging
from typing import List
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.database import make_engine, make_session_maker
from core.config import Settings, settings as default_settings
from core.exceptions import SyncException
from ingestion.runner import sync_growi_posts
from schemas.growi import PageVariant
from schemas.sync import SyncRunConfig, SyncSummary

logger = logging.getLogger(__name__)


class GrowiSyncScheduler:
    """
    Periodically syncs the trailing window for every Growi variant that has
    a credential configured.

    APScheduler runs at most one instance of the job at a time in this
    process. Runs from other processes are not coordinated.
    """

    def __init__(self, config: Settings = default_settings):
        self.config = config
        self.scheduler = AsyncIOScheduler()
        self.engine = make_engine(config.DATABASE_URL)
        self.SessionLocal = make_session_maker(self.engine)

    def configured_variants(self) -> List[PageVariant]:
        variants = []
        if (self.config.GROWI_BEARER_TOKEN or "").strip():
            variants.append(PageVariant.PRIVATE)
        if (self.config.GROWI_PUBLIC_API_KEY or "").strip():
            variants.append(PageVariant.PUBLIC)
        return variants

    async def run_sync_job(self) -> List[SyncSummary]:
        """Job to run the Growi sync for each configured variant"""
        logger.info("Scheduler: Starting Growi sync job")
        summaries = []

        for variant in self.configured_variants():
            async with self.SessionLocal() as session:
                try:
                    run_config = SyncRunConfig.trailing_window(
                        self.config.SYNC_LOOKBACK_DAYS,
                        variant=variant,
                        per_page=self.config.SYNC_PER_PAGE,
                        max_pages=self.config.SYNC_MAX_PAGES,
                    )
                    summary = await sync_growi_posts(session, run_config, self.config)
                    summaries.append(summary)
                    logger.info(
                        f"Scheduler: Growi {variant.value} sync fetched "
                        f"{summary.rows_fetched} rows over {summary.pages_fetched} pages"
                    )
                except SyncException as e:
                    logger.error(f"Scheduler: Growi {variant.value} sync failed - {e}")

        return summaries

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_sync_job,
            trigger=IntervalTrigger(minutes=self.config.SYNC_INTERVAL_MINUTES),
            id="growi_sync_job",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info("Growi sync scheduler started")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Growi sync scheduler stopped")
