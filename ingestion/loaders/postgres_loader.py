"""
Load normalized Growi rows with idempotent upsert logic
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from models.growi_post import GrowiPost, GrowiPostMetric
from schemas.normalized import GrowiPostRow
from core.exceptions import PersistenceError
import logging

logger = logging.getLogger(__name__)

UPSERT_OPERATION = "upsert growi page"

INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ConflictMerge:
    """
    The two branches of one table's ``INSERT ... ON CONFLICT DO UPDATE``.

    ``insert_columns`` are written when the key is new; ``update_columns``
    are overwritten from ``excluded`` when it already exists. Anything in the
    first list but not the second keeps its stored value.
    """

    table: Table
    key: str
    insert_columns: Tuple[str, ...]
    update_columns: Tuple[str, ...]

    def __post_init__(self):
        if self.key in self.update_columns:
            raise ValueError(f"{self.table.name}: conflict key {self.key} cannot be updated")
        unknown = set(self.update_columns) - set(self.insert_columns)
        if unknown:
            raise ValueError(f"{self.table.name}: update columns not inserted: {sorted(unknown)}")

    @property
    def preserved_columns(self) -> Tuple[str, ...]:
        return tuple(
            c for c in self.insert_columns
            if c != self.key and c not in self.update_columns
        )

    def statement(self, insert: Callable, values: List[Dict[str, Any]]):
        stmt = insert(self.table).values(values)
        return stmt.on_conflict_do_update(
            index_elements=[self.key],
            set_={column: stmt.excluded[column] for column in self.update_columns},
        )


POSTS_MERGE = ConflictMerge(
    table=GrowiPost.__table__,
    key="growi_post_id",
    insert_columns=(
        "growi_post_id",
        "share_url",
        "platform",
        "content_type",
        "external_id",
        "title",
        "connected_account_id",
        "connected_account_username",
        "profile_share_url",
        "campaign_id",
        "campaign_name",
        "create_time",
        "updated_at",
        "raw_json",
        "first_seen_at",
        "last_seen_at",
    ),
    # first_seen_at: insert branch only
    update_columns=(
        "share_url",
        "platform",
        "content_type",
        "external_id",
        "title",
        "connected_account_id",
        "connected_account_username",
        "profile_share_url",
        "campaign_id",
        "campaign_name",
        "create_time",
        "updated_at",
        "raw_json",
        "last_seen_at",
    ),
)

METRICS_MERGE = ConflictMerge(
    table=GrowiPostMetric.__table__,
    key="growi_post_id",
    insert_columns=(
        "growi_post_id",
        "view_count",
        "like_count",
        "comment_count",
        "share_count",
        "saves_count",
        "engagement_rate",
        "pulled_at",
    ),
    update_columns=(
        "view_count",
        "like_count",
        "comment_count",
        "share_count",
        "saves_count",
        "engagement_rate",
        "pulled_at",
    ),
)


class GrowiPostLoader:
    """
    Upsert a page of canonical rows into src_growi_posts and
    src_growi_post_metrics.

    Ensures:
    - Both tables are written in one transaction; any failure rolls back the
      whole page
    - No duplicate rows on repeated runs (keyed by growi_post_id)
    - first_seen_at survives every update, last_seen_at tracks the latest run
    - Metrics are a snapshot, fully replaced on every upsert
    """

    def __init__(
        self,
        db_session: AsyncSession,
        dialect: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.db = db_session
        self._dialect = dialect
        self.clock = clock

    @property
    def dialect(self) -> str:
        if self._dialect is None:
            self._dialect = self.db.get_bind().dialect.name
        return self._dialect

    def _insert(self) -> Callable:
        try:
            return INSERT_BY_DIALECT[self.dialect]
        except KeyError:
            raise PersistenceError(
                UPSERT_OPERATION,
                original_exception=NotImplementedError(
                    f"ON CONFLICT upsert is not supported for dialect {self.dialect}"
                ),
            )

    async def upsert_page(self, rows: Sequence[GrowiPostRow]) -> int:
        """
        Upsert one page of rows in a single transaction.

        Returns:
            Number of distinct posts written (0 for an empty page)

        Raises:
            PersistenceError: the transaction failed and was rolled back
        """
        if not rows:
            return 0

        unique_rows = _dedupe_by_post_id(rows)
        if len(unique_rows) != len(rows):
            logger.warning(
                f"Collapsed {len(rows) - len(unique_rows)} duplicate post ids within one page"
            )

        now = self.clock()
        posts = [_post_values(row, now) for row in unique_rows]
        metrics = [_metric_values(row, now) for row in unique_rows]
        insert = self._insert()

        try:
            await self.db.execute(POSTS_MERGE.statement(insert, posts))
            await self.db.execute(METRICS_MERGE.statement(insert, metrics))
            await self.db.commit()
        except Exception as e:
            logger.error(f"Upsert of {len(unique_rows)} Growi posts failed: {e}")
            await self._rollback()
            raise PersistenceError(
                UPSERT_OPERATION,
                original_exception=e,
                context={"rows": len(unique_rows)}
            )

        logger.debug(f"Upserted {len(unique_rows)} Growi posts")
        return len(unique_rows)

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except Exception as e:
            logger.error(f"Rollback after failed upsert also failed: {e}")


def _dedupe_by_post_id(rows: Sequence[GrowiPostRow]) -> List[GrowiPostRow]:
    """Keep the last occurrence of each growi_post_id."""
    return list({row.growi_post_id: row for row in rows}.values())


def _post_values(row: GrowiPostRow, now: datetime) -> Dict[str, Any]:
    return {
        "growi_post_id": row.growi_post_id,
        "share_url": row.share_url,
        "platform": row.platform,
        "content_type": row.content_type,
        "external_id": row.external_id,
        "title": row.title,
        "connected_account_id": row.connected_account_id,
        "connected_account_username": row.connected_account_username,
        "profile_share_url": row.profile_share_url,
        "campaign_id": row.campaign_id,
        "campaign_name": row.campaign_name,
        "create_time": row.create_time,
        "updated_at": row.updated_at,
        "raw_json": row.raw,
        "first_seen_at": now,
        "last_seen_at": now,
    }


def _metric_values(row: GrowiPostRow, now: datetime) -> Dict[str, Any]:
    m = row.metrics
    return {
        "growi_post_id": row.growi_post_id,
        # NOT NULL columns: an unreported counter is stored as 0
        "view_count": m.view_count or 0,
        "like_count": m.like_count or 0,
        "comment_count": m.comment_count or 0,
        "share_count": m.share_count or 0,
        "saves_count": m.saves_count,
        "engagement_rate": Decimal(m.engagement_rate) if m.engagement_rate is not None else None,
        "pulled_at": now,
    }
