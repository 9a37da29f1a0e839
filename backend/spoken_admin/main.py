"""
Spoken Admin API — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, the request pipeline, route
       mounting and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn (uvicorn spoken_admin.main:app) and by tests, which
       pass their own identity provider and rate limiter.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  App-wide middleware:                               │
    │  ┌──────────┐ ┌─────────┐ ┌──────────┐ ┌─────────┐  │
    │  │ Req ID   │→│ Logging │→│ Security │→│CORS/GZip│  │
    │  └──────────┘ └─────────┘ │ Headers  │ └─────────┘  │
    │                           └──────────┘              │
    │  ApiPipeline (per /api route):                      │
    │  ┌──────────┐ ┌──────┐ ┌─────────────────┐          │
    │  │Rate Limit│→│ Auth │→│Sanitize+Validate│→ Handler │
    │  └──────────┘ └──────┘ └─────────────────┘          │
    │                + role check (users)                 │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────────────────┐ ┌─────────────┐           │
    │  │ /api/courses[/{id}]  │ │ GET /health │           │
    │  │ /api/users[/{id}]    │ └─────────────┘           │
    │  └──────────────────────┘                           │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration check (logged, not fatal)
    Shutdown: close the identity provider's HTTP client, dispose the
              database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from spoken_admin import __version__
from spoken_admin.config import settings
from spoken_admin.database import dispose_engine
from spoken_admin.exceptions import SchemaValidationError, SpokenAdminError
from spoken_admin.middleware.auth import IdentityProvider, SupabaseIdentityProvider
from spoken_admin.middleware.logging import RequestLoggingMiddleware
from spoken_admin.middleware.pipeline import GENERIC_ERROR_MESSAGE, ApiPipeline
from spoken_admin.middleware.rate_limit import RateLimiter
from spoken_admin.middleware.request_id import RequestIDMiddleware, request_id_var
from spoken_admin.middleware.security_headers import SecurityHeadersMiddleware
from spoken_admin.routes import courses, health, users

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Called once during startup, before anything else logs.
    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Docker captures stdout
        ],
        force=True,
    )

    # Third-party libraries log every connection at DEBUG/INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Spoken Admin API %s starting up (%s)...", __version__, settings.environment)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Not fatal: /health still answers and tells the operator what's wrong
        logger.error("Configuration error: %s", str(e))
        logger.error("Authenticated routes will answer 401 until this is fixed.")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Spoken Admin API shutting down...")

    close_provider = getattr(app.state.identity_provider, "aclose", None)
    if close_provider is not None:
        await close_provider()

    await dispose_engine()

    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Render errors raised outside the pipeline (plain routes, dependencies)
    with the same {"error": ...} envelope the pipeline uses.

    Pipeline routes never reach these: ApiPipeline turns every exception
    into a response itself.
    """

    @app.exception_handler(SchemaValidationError)
    async def handle_schema_validation_error(request: Request, exc: SchemaValidationError):
        """Client sent invalid input: list every field that failed."""
        return JSONResponse(
            status_code=400,
            content={
                "error": "Validation failed",
                "details": [error.model_dump() for error in exc.errors],
            },
        )

    @app.exception_handler(SpokenAdminError)
    async def handle_application_error(request: Request, exc: SpokenAdminError):
        """Known application error: its status and client-safe message."""
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """
        Catch-all for truly unexpected errors.

        Security: the stack trace is logged server-side only.
        """
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(status_code=500, content={"error": GENERIC_ERROR_MESSAGE})


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    identity_provider: Optional[IdentityProvider] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        identity_provider: Resolves callers for authenticated routes.
                           Defaults to Supabase Auth from settings.
        rate_limiter:      Shared by every pipeline route. Defaults to a fresh
                           in-memory limiter owned by this app instance.
    """
    app = FastAPI(
        title="Spoken Admin API",
        description=(
            "Admin API for the Spoken French-learning app: course and learner "
            "management behind authentication, rate limiting and input validation."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    if identity_provider is None:
        identity_provider = SupabaseIdentityProvider(
            base_url=settings.supabase_url,
            anon_key=settings.supabase_anon_key,
            cookie_name=settings.auth_cookie_name,
            timeout=settings.identity_timeout_seconds,
        )

    pipeline = ApiPipeline(
        identity_provider=identity_provider,
        rate_limiter=rate_limiter,
        expose_error_details=settings.is_development,
    )
    app.state.identity_provider = identity_provider
    app.state.pipeline = pipeline

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition:
    # RequestID → Logging → SecurityHeaders → GZip → CORS → route

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,     # Session cookie from the admin UI
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(courses.build_router(pipeline))
    app.include_router(users.build_router(pipeline))
    app.include_router(health.router)

    return app


# uvicorn expects `spoken_admin.main:app` to be importable
app = create_app()
