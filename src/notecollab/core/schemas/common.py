"""
Shared response schemas - errors, health
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Error body rendered for every collaboration failure."""

    detail: str = Field(description="Human-readable error message")
    kind: str = Field(description="Stable failure kind, e.g. 'expired'")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"detail": "This invitation has expired", "kind": "expired"}
        }
    )


class HealthCheckResponse(BaseModel):
    """Health check response schema."""

    status: str = Field(description="Overall status: healthy, degraded or unhealthy")
    timestamp: datetime = Field(description="When the check ran")
    version: str = Field(description="Application version")
    checks: Dict[str, Dict[str, Any]] = Field(description="Per-dependency results")
    details: Optional[Dict[str, Any]] = Field(default=None)
