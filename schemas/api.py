"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import datetime, timezone


class LastUpdateResponse(BaseModel):
    """Completion time of the last successful collection run"""
    last_update_time: datetime

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "last_update_time": "2024-01-15T10:30:00Z"
            }
        }


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field("healthy", description="Overall system status: healthy or unhealthy")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    database_connected: bool
    last_update_time: Optional[datetime] = None

    @model_validator(mode="after")
    def determine_status(self):
        """Determine overall health status"""
        self.status = "healthy" if self.database_connected else "unhealthy"
        return self
