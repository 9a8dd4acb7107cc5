"""
Pydantic schemas for sync run parameters and the run summary
"""

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from typing import Optional
from datetime import date, datetime, timedelta, timezone
from core.exceptions import ConfigurationError
from models.base import SyncStatus
from schemas.growi import PageVariant

DATE_FORMAT = "%m/%d/%Y"

PER_PAGE_LIMITS = {
    PageVariant.PRIVATE: 1000,
    PageVariant.PUBLIC: 100,
}


def format_growi_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def parse_growi_date(value: str) -> date:
    return datetime.strptime(value, DATE_FORMAT).date()


class SyncRunConfig(BaseModel):
    """
    Validated parameters for one sync run.

    Dates are inclusive and use the partner's MM/DD/YYYY format.
    """

    variant: PageVariant = PageVariant.PRIVATE
    start_date: str
    end_date: str
    per_page: int = Field(100, ge=1)
    max_pages: Optional[int] = Field(None, ge=1)

    # public variant only
    limit: Optional[int] = Field(None, ge=1, le=1000)
    include_gmv: bool = False

    @field_validator("start_date", "end_date")
    @classmethod
    def check_date_format(cls, v):
        v = v.strip()
        try:
            parse_growi_date(v)
        except ValueError:
            raise ValueError(f"expected MM/DD/YYYY, got {v!r}")
        if len(v) != 10:
            raise ValueError(f"expected MM/DD/YYYY, got {v!r}")
        return v

    @model_validator(mode="after")
    def check_window_and_page_size(self):
        if parse_growi_date(self.start_date) > parse_growi_date(self.end_date):
            raise ValueError("start_date must not be after end_date")

        per_page_limit = PER_PAGE_LIMITS[self.variant]
        if self.per_page > per_page_limit:
            raise ValueError(
                f"per_page must be between 1 and {per_page_limit} for the {self.variant.value} API"
            )
        return self

    @property
    def effective_limit(self) -> int:
        return self.limit if self.limit is not None else self.per_page

    @classmethod
    def build(cls, **kwargs) -> "SyncRunConfig":
        """Validate run parameters, raising ConfigurationError on bad input."""
        try:
            return cls(**kwargs)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"]) or "config"
            raise ConfigurationError(
                f"Invalid sync parameters ({location}: {first['msg']})",
                context={"error_count": e.error_count()},
                original_exception=e
            )

    @classmethod
    def trailing_window(
        cls,
        days: int,
        today: Optional[date] = None,
        **kwargs
    ) -> "SyncRunConfig":
        """Config covering the last ``days`` days up to and including ``today``."""
        today = today or datetime.now(timezone.utc).date()
        start = today - timedelta(days=max(days - 1, 0))
        return cls.build(
            start_date=format_growi_date(start),
            end_date=format_growi_date(today),
            **kwargs
        )


class SyncSummary(BaseModel):
    """Report of a completed sync run. Never persisted."""

    variant: PageVariant
    status: SyncStatus = SyncStatus.SUCCESS
    start_date: str
    end_date: str
    per_page: int
    limit: Optional[int] = None
    include_gmv: Optional[bool] = None
    pages_fetched: int
    rows_fetched: int
    rows_upserted: int
    row_count: int
    page_count: int
    completed_at: datetime
