"""
Pydantic schemas for the two Growi page shapes.

The private ``user_contents`` endpoint and the public ``top_posts_by_views``
endpoint are versioned independently, so each gets its own page model. The
models only check structure (keys, ids, pagination metadata); counter and
timestamp values are kept loose here and cleaned up by the normalizer.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Optional, Union
import enum


class PageVariant(str, enum.Enum):
    """Which Growi endpoint a page came from"""
    PRIVATE = "private"
    PUBLIC = "public"


Number = Union[int, float, str, None]


def coerce_growi_int(value: Any) -> Any:
    """Strip thousands separators from integer strings (``"1,234"`` -> ``1234``)."""
    if isinstance(value, str):
        normalized = value.replace(",", "").strip()
        if normalized:
            try:
                return int(normalized)
            except ValueError:
                return value
    return value


# ============================================================================
# Private variant (organizations/{org}/user_contents)
# ============================================================================

class GrowiPrivateMeta(BaseModel):
    row_count: int = Field(..., ge=0)
    page_count: int = Field(..., ge=0)
    current_page: int = Field(..., ge=0)
    next_page: Optional[int]
    prev_page: Optional[int] = None
    total_count: Optional[int] = None
    total_pages: Optional[int] = None


class GrowiUserContentRow(BaseModel):
    """A row from the authenticated endpoint. Unknown keys are kept."""

    model_config = ConfigDict(extra="allow")

    id: int
    share_url: str = Field(..., min_length=1)
    platform: str = Field(..., min_length=1)
    content_type: Optional[str] = None
    external_id: Optional[str] = None
    title: Optional[str] = None
    connected_account_id: Union[str, int, None] = None
    connected_account_username: Optional[str] = None
    profile_share_url: Optional[str] = None
    campaign_id: Optional[int] = None
    campaign_name: Optional[str] = None
    create_time: Number = None
    updated_at: Optional[str] = None
    view_count: Number
    like_count: Number
    comment_count: Number
    share_count: Number
    saves_count: Number = None
    engagement_rate: Number = None


class GrowiPrivatePage(BaseModel):
    data: List[GrowiUserContentRow]
    meta: GrowiPrivateMeta

    @property
    def records(self) -> List[GrowiUserContentRow]:
        return self.data

    @property
    def current_page(self) -> int:
        return self.meta.current_page

    @property
    def row_count(self) -> int:
        return self.meta.row_count

    @property
    def page_count(self) -> int:
        return self.meta.page_count

    def has_more_pages(self) -> bool:
        if self.meta.next_page is None:
            return False
        if self.meta.page_count and self.meta.current_page >= self.meta.page_count:
            return False
        return True

    def next_page_number(self) -> int:
        if self.meta.next_page is not None:
            return self.meta.next_page
        return self.meta.current_page + 1


# ============================================================================
# Public variant (public/v1/stats/top_posts_by_views)
# ============================================================================

class GrowiPublicPostMetrics(BaseModel):
    views: Number
    likes: Number
    comments: Number
    shares: Number


class GrowiPublicTopPost(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    title: Optional[str] = None
    share_url: str = Field(..., min_length=1)
    platform: str = Field(..., min_length=1)
    content_type: Optional[str] = None
    external_id: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None
    profile_share_url: Optional[str] = None
    metrics: GrowiPublicPostMetrics
    gmv: Number = None

    @field_validator("id", mode="before")
    @classmethod
    def clean_id(cls, v):
        return coerce_growi_int(v)


class GrowiPublicData(BaseModel):
    top_posts_by_views: List[GrowiPublicTopPost]


class GrowiPublicMeta(BaseModel):
    current_page: int = Field(..., ge=0)
    per_page: Optional[int] = Field(None, ge=0)
    row_count: int = Field(..., ge=0)
    page_count: int = Field(..., ge=0)
    has_more: Optional[bool] = None

    @field_validator("current_page", "per_page", "row_count", "page_count", mode="before")
    @classmethod
    def clean_ints(cls, v):
        return coerce_growi_int(v)


class GrowiPublicPage(BaseModel):
    success: bool
    data: GrowiPublicData
    meta: GrowiPublicMeta

    @property
    def records(self) -> List[GrowiPublicTopPost]:
        return self.data.top_posts_by_views

    @property
    def current_page(self) -> int:
        return self.meta.current_page

    @property
    def row_count(self) -> int:
        return self.meta.row_count

    @property
    def page_count(self) -> int:
        return self.meta.page_count

    def has_more_pages(self) -> bool:
        if self.meta.page_count == 0 or self.meta.current_page >= self.meta.page_count:
            return False
        if self.meta.has_more is False:
            return False
        return True

    def next_page_number(self) -> int:
        return self.meta.current_page + 1


GrowiPage = Union[GrowiPrivatePage, GrowiPublicPage]

PAGE_MODELS: Dict[PageVariant, type] = {
    PageVariant.PRIVATE: GrowiPrivatePage,
    PageVariant.PUBLIC: GrowiPublicPage,
}
