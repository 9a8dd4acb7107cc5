"""
Pydantic schemas for data validation and serialization.

Schemas:
    growi: Page models for the private and public Growi endpoints
    normalized: Canonical post row produced by the normalizer
    sync: Sync run parameters and the run summary
    api: API endpoint request/response schemas

Usage:
    from schemas.growi import GrowiPrivatePage, PageVariant
    from schemas.normalized import GrowiPostRow
    from schemas.sync import SyncRunConfig, SyncSummary

Example:
    run_config = SyncRunConfig.build(
        variant=PageVariant.PUBLIC,
        start_date="01/01/2025",
        end_date="01/07/2025",
        per_page=50,
    )
    assert run_config.effective_limit == 50

Validation:
    Page models check structure only; value cleanup (thousands separators,
    percent signs, timestamps) belongs to ingestion.transformers.normalizer.
"""

from schemas.growi import GrowiPrivatePage, GrowiPublicPage, PageVariant
from schemas.normalized import GrowiPostMetrics, GrowiPostRow
from schemas.sync import SyncRunConfig, SyncSummary
from schemas.api import HealthCheckResponse, SyncRequest

__all__ = [
    "PageVariant",
    "GrowiPrivatePage",
    "GrowiPublicPage",
    "GrowiPostRow",
    "GrowiPostMetrics",
    "SyncRunConfig",
    "SyncSummary",
    "SyncRequest",
    "HealthCheckResponse",
]
