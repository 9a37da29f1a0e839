"""
Spoken Admin API — Request Pipeline
=====================================

What:  Wraps a business handler with rate limiting, authentication, body
       validation and security headers, and turns every way a request can end
       into one HTTP response.
Why:   Each admin route needs the same gates in the same order. Writing them
       once keeps the order (and therefore what clients observe) identical
       across routes.
How:   ApiPipeline.wrap(handler, RouteConfig(...)) returns a FastAPI endpoint.
       For each request, run() walks the state machine below and produces a
       PipelineOutcome; finalize() renders it and applies security headers.
Who:   Route modules (routes/courses.py, routes/users.py) wrap their handlers
       with it.

State Machine:
    Start
      → RateLimitCheck   (only if config.rate_limit)       fail → RateLimited      429
      → AuthCheck        (only if config.require_auth)     fail → Unauthorized     401
      → RoleCheck        (only if config.required_role)    fail → Forbidden        403
      → BodyValidation   (schema set AND method != GET)    fail → ValidationFailed 400
      → HandlerExecution                                   raise → HandlerError    4xx/5xx
      → ResponseFinalize (always: security headers on every branch)
      → Done

    The first failing check wins. An anonymous client that is also over its
    rate limit gets 429, not 401, because the limiter runs first.

Error Exposure:
    Unexpected handler exceptions are logged with a timestamp and stack trace.
    The response body carries the exception message and stack only when the
    pipeline was built with expose_error_details=True (development mode);
    otherwise it carries a fixed generic message.

Cancellation:
    asyncio.CancelledError is not an Exception subclass and is never caught
    here, so a client disconnect cancels the in-flight identity lookup or
    handler await cooperatively.
"""

import logging
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from fastapi.encoders import jsonable_encoder
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from spoken_admin.exceptions import (
    AuthenticationError,
    SchemaValidationError,
    SpokenAdminError,
)
from spoken_admin.middleware.auth import (
    IdentityProvider,
    UserRole,
    authenticate_caller,
    has_permission,
)
from spoken_admin.middleware.rate_limit import RateLimiter, client_key_from_request
from spoken_admin.middleware.request_id import request_id_var
from spoken_admin.middleware.sanitize import sanitize
from spoken_admin.middleware.security_headers import apply_security_headers
from spoken_admin.middleware.validation import Schema, validate
from spoken_admin.schemas.common import FieldError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An internal error occurred"


# ══════════════════════════════════════════════════════════════════════════
# Route Configuration
# ══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class RateLimitConfig:
    """Request budget for one client key: `max_requests` per `window_ms`."""

    window_ms: int
    max_requests: int

    def __post_init__(self):
        if self.window_ms <= 0:
            raise ValueError(f"window_ms must be positive, got {self.window_ms}")
        if self.max_requests <= 0:
            raise ValueError(f"max_requests must be positive, got {self.max_requests}")


@dataclass(frozen=True)
class RouteConfig:
    """
    Per-route pipeline settings, fixed when the route is declared.

    require_auth:    Resolve the caller before the handler runs (default True)
    validate_schema: Schema for non-GET request bodies (None skips validation)
    rate_limit:      Request budget per client key (None skips rate limiting)
    required_role:   Lowest caller role admitted (None admits any caller);
                     needs require_auth
    """

    require_auth: bool = True
    validate_schema: Optional[Schema] = None
    rate_limit: Optional[RateLimitConfig] = None
    required_role: Optional[UserRole] = None

    def __post_init__(self):
        if self.required_role is not None and not self.require_auth:
            raise ValueError("required_role needs require_auth=True")


@dataclass
class RequestContext:
    """
    What a handler receives.

    caller_id is set whenever the route requires auth (the gate guarantees it);
    on public routes it is None. body holds the validated value when the
    route has a schema and the method is not GET.
    """

    request: Request
    caller_id: Optional[str] = None
    route_params: Dict[str, str] = field(default_factory=dict)
    body: Any = None


Handler = Callable[[RequestContext], Awaitable[Any]]
Endpoint = Callable[[Request], Awaitable[Response]]


# ══════════════════════════════════════════════════════════════════════════
# Pipeline Outcomes
# ══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Success:
    response: Response


@dataclass(frozen=True)
class RateLimited:
    status_code: int = 429


@dataclass(frozen=True)
class Unauthorized:
    status_code: int = 401


@dataclass(frozen=True)
class Forbidden:
    status_code: int = 403


@dataclass(frozen=True)
class ValidationFailed:
    errors: List[FieldError]
    status_code: int = 400


@dataclass(frozen=True)
class HandlerError:
    status_code: int
    message: str
    details: Optional[str] = None
    stack: Optional[str] = None


PipelineOutcome = Union[
    Success, RateLimited, Unauthorized, Forbidden, ValidationFailed, HandlerError
]


# ══════════════════════════════════════════════════════════════════════════
# Orchestrator
# ══════════════════════════════════════════════════════════════════════════


class ApiPipeline:
    """
    Composes the request gates around business handlers.

    Args:
        identity_provider:    Resolves callers for routes with require_auth
        rate_limiter:         Owner of the per-client counters. Each pipeline
                              gets its own unless one is passed in, so tests
                              never share counts.
        expose_error_details: Include exception message and stack in 5xx
                              bodies (development only)
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        rate_limiter: Optional[RateLimiter] = None,
        expose_error_details: bool = False,
    ):
        self.identity_provider = identity_provider
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.expose_error_details = expose_error_details

    def wrap(self, handler: Handler, config: Optional[RouteConfig] = None) -> Endpoint:
        """
        Turn `handler` into a FastAPI endpoint running behind the pipeline.

        The endpoint's only parameter is the Starlette Request, so FastAPI
        injects it and does no body parsing of its own.
        """
        route_config = config or RouteConfig()

        async def endpoint(request: Request) -> Response:
            return await self.handle(request, handler, route_config)

        # Not functools.wraps: FastAPI would follow __wrapped__ and try to
        # inject the handler's RequestContext parameter.
        endpoint.__name__ = handler.__name__
        endpoint.__qualname__ = handler.__qualname__
        endpoint.__doc__ = handler.__doc__
        return endpoint

    async def handle(self, request: Request, handler: Handler, config: RouteConfig) -> Response:
        outcome = await self.run(request, handler, config)
        return self.finalize(outcome)

    async def run(self, request: Request, handler: Handler, config: RouteConfig) -> PipelineOutcome:
        """Walk the gates in order; the first failure short-circuits the rest."""
        # ── RateLimitCheck ────────────────────────────────────────────────
        if config.rate_limit is not None:
            client_key = client_key_from_request(request)
            admitted = self.rate_limiter.check_and_consume(
                client_key,
                config.rate_limit.window_ms,
                config.rate_limit.max_requests,
            )
            if not admitted:
                return RateLimited()

        # ── AuthCheck ─────────────────────────────────────────────────────
        caller_id: Optional[str] = None
        if config.require_auth:
            try:
                caller = await authenticate_caller(request, self.identity_provider)
            except AuthenticationError:
                return Unauthorized()
            caller_id = caller.id

            # ── RoleCheck ─────────────────────────────────────────────────
            if config.required_role is not None and not has_permission(
                caller.role, config.required_role
            ):
                logger.info(
                    "[%s] Caller %s (role %s) lacks %s for %s %s",
                    request_id_var.get(""),
                    caller_id,
                    caller.role,
                    config.required_role.value,
                    request.method,
                    request.url.path,
                )
                return Forbidden()

        # ── BodyValidation ────────────────────────────────────────────────
        body: Any = None
        if config.validate_schema is not None and request.method != "GET":
            try:
                raw_body = await request.json()
            except ValueError:
                return self._validation_failed(
                    request, [FieldError(path=[], message="Request body must be valid JSON")]
                )

            result = validate(config.validate_schema, sanitize(raw_body))
            if not result.is_valid:
                return self._validation_failed(request, result.errors)
            body = result.value

        context = RequestContext(
            request=request,
            caller_id=caller_id,
            route_params=sanitize(dict(request.path_params)),
            body=body,
        )

        # ── HandlerExecution ──────────────────────────────────────────────
        try:
            result = await handler(context)
            return Success(self._to_response(result))
        except SchemaValidationError as exc:
            return self._validation_failed(request, exc.errors)
        except SpokenAdminError as exc:
            log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
            logger.log(
                log_level,
                "[%s] %s %s failed with %d: %s | Context: %s",
                request_id_var.get(""),
                request.method,
                request.url.path,
                exc.status_code,
                exc.message,
                exc.context,
            )
            return HandlerError(status_code=exc.status_code, message=exc.message)
        except Exception as exc:
            return self._unexpected_error(request, exc)

    def finalize(self, outcome: PipelineOutcome) -> Response:
        """Render `outcome` as an HTTP response carrying the security headers."""
        if isinstance(outcome, Success):
            response = outcome.response
        elif isinstance(outcome, RateLimited):
            response = JSONResponse(status_code=outcome.status_code, content={"error": "Rate limit exceeded"})
        elif isinstance(outcome, Unauthorized):
            response = JSONResponse(status_code=outcome.status_code, content={"error": "Unauthorized"})
        elif isinstance(outcome, Forbidden):
            response = JSONResponse(status_code=outcome.status_code, content={"error": "Forbidden"})
        elif isinstance(outcome, ValidationFailed):
            response = JSONResponse(
                status_code=outcome.status_code,
                content={
                    "error": "Validation failed",
                    "details": [error.model_dump() for error in outcome.errors],
                },
            )
        else:
            content: Dict[str, Any] = {"error": outcome.message}
            if outcome.details is not None:
                content["details"] = outcome.details
            if outcome.stack is not None:
                content["stack"] = outcome.stack
            response = JSONResponse(status_code=outcome.status_code, content=content)

        return apply_security_headers(response)

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _to_response(result: Any) -> Response:
        if isinstance(result, Response):
            return result
        return JSONResponse(status_code=200, content=jsonable_encoder(result))

    @staticmethod
    def _validation_failed(request: Request, errors: List[FieldError]) -> ValidationFailed:
        # Caller-correctable: INFO, not an error
        logger.info(
            "[%s] Validation failed for %s %s: %d field error(s)",
            request_id_var.get(""),
            request.method,
            request.url.path,
            len(errors),
        )
        return ValidationFailed(errors=list(errors))

    def _unexpected_error(self, request: Request, exc: Exception) -> HandlerError:
        timestamp = datetime.now(timezone.utc).isoformat()
        logger.error(
            "[%s] Unhandled error in %s %s at %s: %s",
            request_id_var.get(""),
            request.method,
            request.url.path,
            timestamp,
            exc,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        if not self.expose_error_details:
            return HandlerError(status_code=500, message=GENERIC_ERROR_MESSAGE)

        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return HandlerError(
            status_code=500,
            message=GENERIC_ERROR_MESSAGE,
            details=str(exc),
            stack=stack,
        )
