"""
Common schema types used across the API.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class CycleDetails(BaseModel):
    """Offending path of a rejected prerequisite edge."""

    path: List[str]
    description: str


class ErrorResponse(BaseModel):
    """Domain error response. Only the fields relevant to the error are present."""

    error: str
    invalid_fields: Optional[Dict[str, str]] = None
    existing_id: Optional[str] = None
    cycle_details: Optional[CycleDetails] = None


class SuccessResponse(BaseModel):
    """Standard success response."""

    message: str
    data: Optional[Any] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str
    database: str = "connected"
