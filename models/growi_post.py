from sqlalchemy import (
    Column, String, Text, BigInteger, Integer, Numeric, DateTime,
    ForeignKey, Index, JSON
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from models.base import Base


class GrowiPost(Base):
    """
    One row per Growi content record, keyed by the partner's numeric id.

    Field Mapping Strategy:

    Private variant (user_contents):
    - id -> growi_post_id
    - share_url / platform / content_type / external_id / title
    - connected_account_id / connected_account_username / profile_share_url
    - campaign_id / campaign_name
    - create_time (unix seconds) -> create_time
    - updated_at (ISO) -> updated_at

    Public variant (top_posts_by_views):
    - id -> growi_post_id
    - username -> connected_account_username
    - no campaign, create_time or updated_at (stored as NULL)

    Lifecycle:
    - first_seen_at is written by the first insert and never updated
    - last_seen_at is rewritten by every sync that observes the post
    """
    __tablename__ = "src_growi_posts"

    growi_post_id = Column(BigInteger, primary_key=True, autoincrement=False)
    share_url = Column(Text, nullable=False, unique=True)
    platform = Column(String(50), nullable=False)
    content_type = Column(String(50), nullable=True)
    external_id = Column(String(255), nullable=True)
    title = Column(Text, nullable=True)

    # Profile identity
    connected_account_id = Column(String(255), nullable=True)
    connected_account_username = Column(String(255), nullable=True)
    profile_share_url = Column(Text, nullable=True)

    # Campaign linkage
    campaign_id = Column(BigInteger, nullable=True)
    campaign_name = Column(Text, nullable=True)

    create_time = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    raw_json = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)

    first_seen_at = Column(DateTime(timezone=True), nullable=False)
    last_seen_at = Column(DateTime(timezone=True), nullable=False)

    metrics = relationship(
        "GrowiPostMetric",
        back_populates="post",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index(
            "src_growi_posts_platform_external_id_uk",
            "platform", "external_id",
            unique=True,
        ),
    )


class GrowiPostMetric(Base):
    """
    Point-in-time counters for a post. Exactly one row per post; each sync
    overwrites it with the latest observed values.
    """
    __tablename__ = "src_growi_post_metrics"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    growi_post_id = Column(
        BigInteger,
        ForeignKey("src_growi_posts.growi_post_id", ondelete="CASCADE"),
        nullable=False,
    )

    view_count = Column(BigInteger, nullable=False)
    like_count = Column(BigInteger, nullable=False)
    comment_count = Column(BigInteger, nullable=False)
    share_count = Column(BigInteger, nullable=False)
    saves_count = Column(BigInteger, nullable=True)
    engagement_rate = Column(Numeric(10, 6), nullable=True)

    pulled_at = Column(DateTime(timezone=True), nullable=False)

    post = relationship("GrowiPost", back_populates="metrics")

    __table_args__ = (
        Index("src_growi_post_metrics_post_uk", "growi_post_id", unique=True),
    )
