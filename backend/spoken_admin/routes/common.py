"""Rate-limit budgets, OpenAPI error docs and path parsing shared by the API routers."""

import uuid
from typing import Any, Dict

from spoken_admin.exceptions import SchemaValidationError
from spoken_admin.middleware.pipeline import RateLimitConfig, RequestContext
from spoken_admin.schemas.common import ErrorResponse, FieldError

FIFTEEN_MINUTES_MS = 15 * 60 * 1000

READ_LIMIT = RateLimitConfig(window_ms=FIFTEEN_MINUTES_MS, max_requests=100)
WRITE_LIMIT = RateLimitConfig(window_ms=FIFTEEN_MINUTES_MS, max_requests=20)

ERROR_RESPONSES: Dict[int | str, Dict[str, Any]] = {
    400: {"description": "Validation failed", "model": ErrorResponse},
    401: {"description": "Missing or invalid session", "model": ErrorResponse},
    429: {"description": "Rate limit exceeded", "model": ErrorResponse},
    500: {"description": "Server error", "model": ErrorResponse},
}


def parse_uuid_param(ctx: RequestContext, name: str, label: str) -> uuid.UUID:
    """The `name` path parameter as a UUID, or a 400 validation error."""
    raw = ctx.route_params.get(name, "")
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise SchemaValidationError(
            [FieldError(path=[name], message=f"{label} must be a valid UUID")]
        )
