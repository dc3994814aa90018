# backend/schemas/base.py
"""
Response envelopes shared by every route
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import TypeVar, Generic, Optional
from datetime import datetime

T = TypeVar("T")


class BaseResponse(BaseModel, Generic[T]):
    """Acknowledgement for write operations, with the affected object in data"""
    success: bool = True
    message: str
    data: Optional[T] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ErrorResponse(BaseModel):
    """
    Body of every 4xx/5xx answer
    error_code is the PeerManagerError code (or VALIDATION_ERROR / INTERNAL_ERROR)
    """
    success: bool = False
    error: str
    error_code: str
    details: Optional[dict] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "success": False,
            "error": "Peer configuration not found. Keys may not be stored for this peer.",
            "error_code": "CONFIG_UNAVAILABLE",
            "details": {"requested_id": "*1F", "available_ids": ["*1A", "*1B"]},
            "timestamp": "2025-12-26T10:00:00Z"
        }
    })


class HealthResponse(BaseModel):
    status: str = "healthy"
    service: str = "peer-manager"
    version: str
    uptime_seconds: Optional[float] = None
    database: str
    router: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
