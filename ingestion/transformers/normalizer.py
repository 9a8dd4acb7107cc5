"""
Transform validated Growi pages into canonical post rows
"""

from typing import Any, Callable, Dict, List, Optional
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
import math
import logging

from schemas.growi import (
    PAGE_MODELS,
    GrowiPage,
    GrowiPublicTopPost,
    GrowiUserContentRow,
    PageVariant,
)
from schemas.normalized import GrowiPostMetrics, GrowiPostRow

logger = logging.getLogger(__name__)

PUBLIC_RAW_SOURCE = "public_top_posts_by_views"

# Unix values at or above this are milliseconds, not seconds.
UNIX_MILLISECONDS_THRESHOLD = 1_000_000_000_000


class GrowiNormalizer:
    """
    Normalize Growi pages of either variant into ``GrowiPostRow`` objects.

    Handles:
    - Variant-aware field mapping (the public shape has no campaign, no
      create/update time, no saves or engagement rate)
    - Counters sent as strings with thousands separators
    - Engagement rates sent as "4.5%" strings or numbers
    - Unix-seconds and ISO-8601 timestamps

    Missing or unusable values become ``None``; nothing here raises for a
    malformed value, so the rest of the row is still usable.
    """

    def __init__(self, variant: PageVariant):
        self.variant = PageVariant(variant)
        self._row_mappers: Dict[PageVariant, Callable[[Any], GrowiPostRow]] = {
            PageVariant.PRIVATE: self._normalize_private,
            PageVariant.PUBLIC: self._normalize_public,
        }

    def normalize_page(self, page: GrowiPage) -> List[GrowiPostRow]:
        """
        Normalize every record of ``page``.

        Raises:
            TypeError: if ``page`` is not the page model of this variant
        """
        expected = PAGE_MODELS[self.variant]
        if not isinstance(page, expected):
            raise TypeError(
                f"{self.variant.value} normalizer got {type(page).__name__}, "
                f"expected {expected.__name__}"
            )

        mapper = self._row_mappers[self.variant]
        return [mapper(record) for record in page.records]

    def _normalize_private(self, row: GrowiUserContentRow) -> GrowiPostRow:
        """Normalize a row of the authenticated user_contents endpoint"""
        return GrowiPostRow(
            growi_post_id=row.id,
            share_url=row.share_url,
            platform=row.platform,
            content_type=row.content_type,
            external_id=row.external_id,
            title=row.title,
            connected_account_id=(
                None if row.connected_account_id is None else str(row.connected_account_id)
            ),
            connected_account_username=row.connected_account_username,
            profile_share_url=row.profile_share_url,
            campaign_id=row.campaign_id,
            campaign_name=row.campaign_name,
            create_time=unix_seconds_to_datetime(row.create_time),
            updated_at=iso_to_datetime(row.updated_at),
            metrics=GrowiPostMetrics(
                view_count=parse_count(row.view_count),
                like_count=parse_count(row.like_count),
                comment_count=parse_count(row.comment_count),
                share_count=parse_count(row.share_count),
                saves_count=parse_count(row.saves_count),
                engagement_rate=parse_engagement_rate(row.engagement_rate),
            ),
            raw=row.model_dump(mode="json"),
        )

    def _normalize_public(self, post: GrowiPublicTopPost) -> GrowiPostRow:
        """Normalize a post of the public top_posts_by_views endpoint"""
        raw = post.model_dump(mode="json")
        raw["raw_source"] = PUBLIC_RAW_SOURCE

        return GrowiPostRow(
            growi_post_id=post.id,
            share_url=post.share_url,
            platform=post.platform,
            content_type=post.content_type,
            external_id=post.external_id,
            title=post.title,
            connected_account_username=post.username,
            profile_share_url=post.profile_share_url,
            metrics=GrowiPostMetrics(
                view_count=parse_count(post.metrics.views),
                like_count=parse_count(post.metrics.likes),
                comment_count=parse_count(post.metrics.comments),
                share_count=parse_count(post.metrics.shares),
            ),
            raw=raw,
        )


def normalize_page(page: GrowiPage, variant: PageVariant) -> List[GrowiPostRow]:
    """Pure ``(page, variant) -> rows`` entry point."""
    return GrowiNormalizer(variant).normalize_page(page)


# ============================================================================
# Value parsers
# ============================================================================

def parse_count(value: Any) -> Optional[int]:
    """
    Parse a non-negative counter.

    ``"1,234"`` -> 1234, ``12.0`` -> 12; empty, fractional, negative or
    unparseable values -> None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, int):
        return value if value >= 0 else None

    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        return int(value) if value >= 0 else None

    if not isinstance(value, str):
        return None

    text = value.replace(",", "").strip()
    if not text:
        return None

    try:
        number = Decimal(text)
    except InvalidOperation:
        return None

    if not number.is_finite() or number != number.to_integral_value() or number < 0:
        return None
    return int(number)


def parse_engagement_rate(value: Any) -> Optional[str]:
    """
    Parse an engagement rate into a plain decimal string.

    ``"4.5%"`` -> ``"4.5"``, ``4.5`` -> ``"4.5"``; unparseable -> None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        text = repr(value)
    elif isinstance(value, str):
        text = value.replace("%", "").strip()
    else:
        return None

    if not text:
        return None

    try:
        number = Decimal(text)
    except InvalidOperation:
        return None

    if not number.is_finite():
        return None
    return _decimal_to_string(number)


def _decimal_to_string(number: Decimal) -> str:
    text = format(number.normalize(), "f")
    return "0" if text in ("-0", "") else text


def unix_seconds_to_datetime(value: Any) -> Optional[datetime]:
    """
    Convert a Unix timestamp to an aware UTC datetime.

    Values <= 0, non-finite or out of range -> None. Values of 1e12 and
    above are read as milliseconds.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None

    if not isinstance(value, (int, float)):
        return None

    if isinstance(value, float) and not math.isfinite(value):
        return None
    if value <= 0:
        return None

    seconds = value / 1000 if value >= UNIX_MILLISECONDS_THRESHOLD else value
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def iso_to_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string; naive values are taken as UTC. Invalid -> None."""
    if not isinstance(value, str) or not value.strip():
        return None

    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
