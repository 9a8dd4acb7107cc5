"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class and shared enums (SyncStatus)
    growi_post: Growi posts and their latest metrics snapshot

Database Schema:
    src_growi_posts         one row per Growi post id (share_url unique)
    src_growi_post_metrics  one row per post, FK with ON DELETE CASCADE

    Raw partner payloads are kept in src_growi_posts.raw_json (JSONB on
    PostgreSQL, JSON elsewhere).

Usage:
    from models import GrowiPost, GrowiPostMetric
    from models.base import Base

Relationships:
    - GrowiPost → GrowiPostMetric (one-to-one snapshot)
"""

from models.base import Base, SyncStatus
from models.growi_post import GrowiPost, GrowiPostMetric

__all__ = [
    "Base",
    "SyncStatus",
    "GrowiPost",
    "GrowiPostMetric",
]
