"""
Unit tests for the Growi post loader
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, Mock
from sqlalchemy.dialects import postgresql
from core.exceptions import PersistenceError
from ingestion.loaders.postgres_loader import (
    METRICS_MERGE,
    POSTS_MERGE,
    ConflictMerge,
    GrowiPostLoader,
)
from models.growi_post import GrowiPost
from schemas.normalized import GrowiPostMetrics, GrowiPostRow

PULLED_AT = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_row(post_id: int, **metrics) -> GrowiPostRow:
    return GrowiPostRow(
        growi_post_id=post_id,
        share_url=f"https://growi.test/p/{post_id}",
        platform="tiktok",
        metrics=GrowiPostMetrics(**metrics),
    )


def compiled_sql(merge: ConflictMerge, values) -> str:
    stmt = merge.statement(postgresql.insert, values)
    return str(stmt.compile(dialect=postgresql.dialect()))


class TestConflictMerge:

    def test_first_seen_is_insert_only(self):
        assert "first_seen_at" in POSTS_MERGE.insert_columns
        assert "first_seen_at" not in POSTS_MERGE.update_columns
        assert POSTS_MERGE.preserved_columns == ("first_seen_at",)

    def test_metrics_are_fully_overwritten(self):
        assert METRICS_MERGE.preserved_columns == ()
        assert "pulled_at" in METRICS_MERGE.update_columns

    def test_posts_statement(self):
        loader = GrowiPostLoader(Mock(), dialect="postgresql")
        values = [{
            "growi_post_id": 1,
            "share_url": "https://growi.test/p/1",
            "platform": "tiktok",
            "first_seen_at": PULLED_AT,
            "last_seen_at": PULLED_AT,
        }]
        assert loader.dialect == "postgresql"

        sql = compiled_sql(POSTS_MERGE, values)

        assert "ON CONFLICT (growi_post_id) DO UPDATE" in sql
        assert "last_seen_at = excluded.last_seen_at" in sql
        assert "first_seen_at = excluded.first_seen_at" not in sql

    def test_key_cannot_be_updated(self):
        with pytest.raises(ValueError):
            ConflictMerge(
                table=GrowiPost.__table__,
                key="growi_post_id",
                insert_columns=("growi_post_id", "title"),
                update_columns=("growi_post_id", "title"),
            )

    def test_update_columns_must_be_inserted(self):
        with pytest.raises(ValueError):
            ConflictMerge(
                table=GrowiPost.__table__,
                key="growi_post_id",
                insert_columns=("growi_post_id",),
                update_columns=("title",),
            )


class TestGrowiPostLoader:

    @pytest.mark.asyncio
    async def test_empty_page_is_a_no_op(self):
        mock_session = AsyncMock()
        loader = GrowiPostLoader(mock_session, dialect="postgresql")

        assert await loader.upsert_page([]) == 0
        mock_session.execute.assert_not_called()
        mock_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_page_written_in_one_transaction(self):
        mock_session = AsyncMock()
        loader = GrowiPostLoader(mock_session, dialect="postgresql", clock=lambda: PULLED_AT)

        result = await loader.upsert_page([make_row(1), make_row(2)])

        assert result == 2
        assert mock_session.execute.await_count == 2
        mock_session.commit.assert_awaited_once()
        mock_session.rollback.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_ids_collapse_to_last(self):
        mock_session = AsyncMock()
        loader = GrowiPostLoader(mock_session, dialect="postgresql", clock=lambda: PULLED_AT)

        result = await loader.upsert_page([
            make_row(1, view_count=10),
            make_row(1, view_count=20),
        ])

        assert result == 1
        metrics_stmt = mock_session.execute.await_args_list[1].args[0]
        params = metrics_stmt.compile(dialect=postgresql.dialect()).params
        assert 20 in params.values()
        assert 10 not in params.values()

    @pytest.mark.asyncio
    async def test_failure_rolls_back(self):
        mock_session = AsyncMock()
        mock_session.execute.side_effect = [None, RuntimeError("deadlock detected")]
        loader = GrowiPostLoader(mock_session, dialect="postgresql")

        with pytest.raises(PersistenceError) as exc_info:
            await loader.upsert_page([make_row(1)])

        error = exc_info.value
        assert error.operation == "upsert growi page"
        assert "deadlock detected" in error.message
        assert error.context["rows"] == 1
        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_unsupported_dialect(self):
        loader = GrowiPostLoader(AsyncMock(), dialect="mysql")
        with pytest.raises(PersistenceError):
            await loader.upsert_page([make_row(1)])

    def test_metric_values(self):
        from ingestion.loaders.postgres_loader import _metric_values

        values = _metric_values(make_row(1, view_count=5, engagement_rate="4.5"), PULLED_AT)

        assert values["view_count"] == 5
        # unreported counters land as 0 in NOT NULL columns
        assert values["like_count"] == 0
        assert values["saves_count"] is None
        assert values["engagement_rate"] == Decimal("4.5")
        assert values["pulled_at"] == PULLED_AT
