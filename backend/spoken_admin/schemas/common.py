"""
Spoken Admin API — Shared Response Schemas
============================================

What:  Pydantic models shared across routes: field errors, error envelope,
       health report.
Why:   Every error the API produces uses the same {"error": ...} envelope, so
       clients parse failures the same way regardless of which step failed.
"""

from typing import List, Optional, Union

from pydantic import BaseModel, Field


class FieldError(BaseModel):
    """
    One violated field rule.

    path:    Location of the offending value, e.g. ["content", "images", 0]
             (empty list means the whole body)
    message: Human-readable description of the rule that failed
    """
    path: List[Union[str, int]] = Field(default_factory=list)
    message: str


class ErrorResponse(BaseModel):
    """
    Standard error envelope.

    Examples:
        {"error": "Unauthorized"}
        {"error": "Rate limit exceeded"}
        {"error": "Validation failed", "details": [{"path": ["level"], "message": "Field required"}]}
        {"error": "An internal error occurred"}
    """
    error: str = Field(description="Error summary")
    details: Optional[Union[List[FieldError], str]] = Field(
        default=None,
        description="Field errors (400) or the exception message (5xx, development only)",
    )
    stack: Optional[str] = Field(default=None, description="Traceback (development only)")


class HealthResponse(BaseModel):
    """
    Health check response showing service and dependency status.

    Status levels:
        healthy:   database and identity provider reachable (HTTP 200)
        degraded:  identity provider unreachable (HTTP 200; reads of public data still work)
        unhealthy: database unreachable (HTTP 503)
    """
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    environment: str = Field(description="Runtime mode")
    database: str = Field(description="Database connectivity: connected, disconnected")
    identity_provider: str = Field(description="Identity provider: available, unavailable")
    uptime_seconds: float = Field(description="Seconds since service started")
