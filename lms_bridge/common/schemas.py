from __future__ import annotations

from typing import Dict
from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Response base: snake_case attributes, camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str


# Documented on every router; bodies come from the handlers in common.errors
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing or malformed input"},
    401: {"model": ErrorResponse, "description": "No usable upstream credential"},
    404: {"model": ErrorResponse, "description": "Upstream resource not found"},
    500: {"model": ErrorResponse, "description": "Upstream LMS failure"},
}


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str
    timestamp: datetime
    uptime_seconds: float
    adapters: Dict[str, bool]  # adapter name -> configured
    route_count: int
