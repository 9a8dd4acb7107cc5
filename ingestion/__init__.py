"""
Growi content synchronization pipeline.

Modules:
    retry: Retry policy and the retry_async combinator
    runner: Sync orchestrator that pages through the partner API
    scheduler: APScheduler integration for periodic syncs

Subpackages:
    extractors: Growi page fetchers (private and public API)
    transformers: Normalization of both page shapes into canonical rows
    loaders: Transactional, idempotent upsert into PostgreSQL

Architecture:
    GrowiSyncRunner → RetryingPageFetcher → GrowiPrivateClient / GrowiPublicClient
                    → GrowiNormalizer → GrowiPostLoader

    Pages are processed one at a time. Each page is upserted in its own
    transaction, so a failed run leaves every earlier page committed and a
    re-run of the same window converges instead of duplicating.

Usage:
    from ingestion.runner import sync_growi_posts
    from schemas.sync import SyncRunConfig

Example:
    run_config = SyncRunConfig.build(
        start_date="01/01/2025",
        end_date="01/31/2025",
        per_page=100,
    )
    async with async_session_maker() as session:
        summary = await sync_growi_posts(session, run_config)

    print(f"Fetched {summary.rows_fetched} rows over {summary.pages_fetched} pages")

Error Handling:
    Fetch errors are classified in core.exceptions; only transport errors,
    429/5xx and Growi's 422 request-timeout are retried. Everything else ends
    the run with the causal error.
"""

from ingestion.retry import RetryPolicy
from ingestion.extractors.growi_client import (
    GrowiPrivateClient,
    GrowiPublicClient,
    RetryingPageFetcher,
)
from ingestion.transformers.normalizer import GrowiNormalizer
from ingestion.loaders.postgres_loader import GrowiPostLoader
from ingestion.runner import GrowiSyncRunner, sync_growi_posts
from ingestion.scheduler import GrowiSyncScheduler

__all__ = [
    "GrowiSyncRunner",
    "sync_growi_posts",
    "GrowiSyncScheduler",
    "GrowiPrivateClient",
    "GrowiPublicClient",
    "RetryingPageFetcher",
    "RetryPolicy",
    "GrowiNormalizer",
    "GrowiPostLoader",
]
