"""
Pydantic schemas for the canonical (variant-independent) Growi post row
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime


class GrowiPostMetrics(BaseModel):
    """
    Counters observed for a post.

    ``None`` means the partner did not report a usable value, which is
    different from a reported zero.
    """
    view_count: Optional[int] = Field(None, ge=0)
    like_count: Optional[int] = Field(None, ge=0)
    comment_count: Optional[int] = Field(None, ge=0)
    share_count: Optional[int] = Field(None, ge=0)
    saves_count: Optional[int] = Field(None, ge=0)
    engagement_rate: Optional[str] = None  # decimal string, no "%"


class GrowiPostRow(BaseModel):
    """
    One normalized Growi record, ready for the upsert.

    Ensures:
    - growi_post_id is the partner's stable numeric id (natural key)
    - timestamps are timezone-aware or absent
    - raw keeps the record as the partner sent it
    """

    growi_post_id: int
    share_url: str = Field(..., min_length=1)
    platform: str = Field(..., min_length=1)

    content_type: Optional[str] = None
    external_id: Optional[str] = None
    title: Optional[str] = None

    connected_account_id: Optional[str] = None
    connected_account_username: Optional[str] = None
    profile_share_url: Optional[str] = None

    campaign_id: Optional[int] = None
    campaign_name: Optional[str] = None

    create_time: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    metrics: GrowiPostMetrics = Field(default_factory=GrowiPostMetrics)
    raw: Dict[str, Any] = Field(default_factory=dict)
