"""
Common schema types used across the API.
"""

from typing import Any, Optional

from pydantic import BaseModel


class SuccessResponse(BaseModel):
    """Standard success response."""

    message: str
    data: Optional[Any] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str
