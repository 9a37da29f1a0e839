"""
Spoken Admin API — Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for the different failure scenarios.
Why:   Each exception carries its HTTP status, so the request pipeline and the
       global handlers can render a response without inspecting messages.
How:   Each exception class carries a client-safe message and an optional
       context dict (logged, never returned).
Who:   Raised by services, the auth gate and route handlers; caught by
       ApiPipeline and by the global handlers registered in main.py.

Exception Hierarchy:
    SpokenAdminError (base)          → 500
    ├── ValidationError              → 400 Bad Request (client can fix)
    │   └── SchemaValidationError    → 400 with the full field error list
    ├── AuthenticationError          → 401 Unauthorized (tagged AuthFailure)
    ├── ForbiddenError               → 403 Forbidden
    ├── NotFoundError                → 404 Not Found
    ├── ConflictError                → 409 Conflict
    └── DatabaseError                → 500 Internal Server Error
"""

import enum
from typing import Any, Dict, List, Optional

from spoken_admin.schemas.common import FieldError


class SpokenAdminError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:     User-facing error description (safe to return in API response)
        context:     Additional debug info (logged but NOT returned to client)
        status_code: HTTP status the error maps to
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(SpokenAdminError):
    """
    Raised when client input fails validation.

    HTTP: 400 Bad Request
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class SchemaValidationError(ValidationError):
    """
    Raised by a Schema when a value violates one or more field rules.

    Carries every violation, not just the first, so the client can correct
    all fields in one round trip.
    """

    def __init__(self, errors: List[FieldError]):
        super().__init__(message="Validation failed")
        self.errors = list(errors)


class AuthFailure(str, enum.Enum):
    """Why the caller's identity could not be resolved."""

    SESSION_MISSING = "session_missing"
    SESSION_EXPIRED = "session_expired"
    SESSION_INVALID = "session_invalid"
    PROVIDER_ERROR = "provider_error"


class AuthenticationError(SpokenAdminError):
    """
    Raised by an identity provider when the caller cannot be resolved.

    HTTP: 401 Unauthorized

    The failure kind is for server-side logging only. Clients always receive
    the same {"error": "Unauthorized"} body whatever the kind.
    """

    status_code = 401

    def __init__(
        self,
        failure: AuthFailure,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message="Unauthorized", context=context)
        self.failure = failure


class ForbiddenError(SpokenAdminError):
    """
    Raised when an authenticated caller may not perform an action.

    HTTP: 403 Forbidden
    """

    status_code = 403

    def __init__(
        self,
        message: str = "Forbidden",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(SpokenAdminError):
    """
    Raised when a requested resource does not exist.

    HTTP: 404 Not Found
    """

    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(SpokenAdminError):
    """Raised when a write would violate a uniqueness rule. HTTP: 409 Conflict"""

    status_code = 409

    def __init__(
        self,
        message: str = "The resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(SpokenAdminError):
    """
    Raised when database operations fail unexpectedly.

    HTTP: 500 Internal Server Error

    Security Note:
        The message returned to the client is always generic. Query text,
        constraint names and driver errors go to the log only.
    """

    status_code = 500

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
