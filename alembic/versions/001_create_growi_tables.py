"""Create the Growi post and metrics tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "src_growi_posts",
        sa.Column("growi_post_id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("share_url", sa.Text(), nullable=False, unique=True),
        sa.Column("platform", sa.String(50), nullable=False),
        sa.Column("content_type", sa.String(50), nullable=True),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("connected_account_id", sa.String(255), nullable=True),
        sa.Column("connected_account_username", sa.String(255), nullable=True),
        sa.Column("profile_share_url", sa.Text(), nullable=True),
        sa.Column("campaign_id", sa.BigInteger(), nullable=True),
        sa.Column("campaign_name", sa.Text(), nullable=True),
        sa.Column("create_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("raw_json", postgresql.JSONB(), nullable=True),
        sa.Column("first_seen_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "src_growi_posts_platform_external_id_uk",
        "src_growi_posts",
        ["platform", "external_id"],
        unique=True,
    )

    op.create_table(
        "src_growi_post_metrics",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "growi_post_id",
            sa.BigInteger(),
            sa.ForeignKey("src_growi_posts.growi_post_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("view_count", sa.BigInteger(), nullable=False),
        sa.Column("like_count", sa.BigInteger(), nullable=False),
        sa.Column("comment_count", sa.BigInteger(), nullable=False),
        sa.Column("share_count", sa.BigInteger(), nullable=False),
        sa.Column("saves_count", sa.BigInteger(), nullable=True),
        sa.Column("engagement_rate", sa.Numeric(10, 6), nullable=True),
        sa.Column("pulled_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "src_growi_post_metrics_post_uk",
        "src_growi_post_metrics",
        ["growi_post_id"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("src_growi_post_metrics_post_uk", table_name="src_growi_post_metrics")
    op.drop_table("src_growi_post_metrics")
    op.drop_index("src_growi_posts_platform_external_id_uk", table_name="src_growi_posts")
    op.drop_table("src_growi_posts")
