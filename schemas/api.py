"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import datetime, timezone


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy or unhealthy")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    database_connected: bool
    tracked_posts: int = 0
    last_seen_at: Optional[datetime] = None

    @model_validator(mode="after")
    def determine_status(self):
        """Determine overall health status"""
        self.status = "healthy" if self.database_connected else "unhealthy"
        return self

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "healthy",
                "timestamp": "2025-01-15T10:30:00Z",
                "database_connected": True,
                "tracked_posts": 1520,
                "last_seen_at": "2025-01-15T10:00:00Z"
            }
        }
    }


# ============================================================================
# Sync Trigger Schemas
# ============================================================================

class SyncRequest(BaseModel):
    """
    Body of the admin sync triggers.

    Omitted dates default to the configured trailing window. Bounds on
    per_page depend on the endpoint and are checked by SyncRunConfig.
    """
    start_date: Optional[str] = Field(None, description="MM/DD/YYYY, inclusive")
    end_date: Optional[str] = Field(None, description="MM/DD/YYYY, inclusive")
    per_page: Optional[int] = Field(None, description="Rows per partner page")
    max_pages: Optional[int] = Field(None, description="Stop after this many pages")
    limit: Optional[int] = Field(None, description="Public API only: result limit")
    include_gmv: bool = Field(False, description="Public API only: include GMV")

    model_config = {
        "json_schema_extra": {
            "example": {
                "start_date": "01/01/2025",
                "end_date": "01/31/2025",
                "per_page": 100,
                "max_pages": 5
            }
        }
    }


class ErrorBody(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    """Error envelope returned by the exception handlers"""
    error: ErrorBody
    request_id: Optional[str] = None
