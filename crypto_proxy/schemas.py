"""
Pydantic schemas for the gateway's own response bodies.
Proxied upstream bodies are passed through untouched and have no schema here.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standardized error payload for every gateway, validation and upstream error."""

    error: str
    message: str
    details: Optional[Any] = None
    status: int

    class Config:
        json_schema_extra = {
            "example": {
                "error": "validation_error",
                "message": "Missing parameter vs_currency",
                "details": None,
                "status": 400,
            }
        }


class HealthResponse(BaseModel):
    status: str
    timestamp: str


class RequestTimingResponse(BaseModel):
    request_count: int
    average_ms: float
    cache_hit_average_ms: float
    upstream_average_ms: float
    max_ms: float


class ReadinessResponse(BaseModel):
    status: str
    uptime_seconds: float
    cache: Dict[str, int]
    requests: RequestTimingResponse
