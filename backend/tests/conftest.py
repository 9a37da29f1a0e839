"""
Spoken Admin API — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (mocked DB, fake identity
       provider, manual clock, API client).

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── mock_db_session:   Mock async database session (no real DB needed)
    ├── identity_provider: Token-table identity provider (no network)
    ├── clock:             Manually advanced millisecond clock
    ├── rate_limiter:      Isolated RateLimiter driven by `clock`
    ├── auth_headers:      Bearer token of an admin caller
    ├── editor_headers:    Bearer token of an editor caller
    ├── sample_course_data: Course row fields
    ├── sample_user_data:  Learner row fields
    └── test_client:       HTTPX AsyncClient over a fresh app instance
"""

import os
from datetime import datetime, timezone
from typing import Dict, Optional
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

# Override settings BEFORE any application import reads them
os.environ["ENVIRONMENT"] = "test"
os.environ["SUPABASE_URL"] = "https://test-project.supabase.co"
os.environ["SUPABASE_ANON_KEY"] = "test-anon-key-not-real"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

from spoken_admin.exceptions import AuthFailure, AuthenticationError
from spoken_admin.middleware.auth import Caller
from spoken_admin.middleware.rate_limit import RateLimiter

VALID_TOKEN = "valid-token"
ADMIN_ID = "user_admin_1"
EDITOR_TOKEN = "editor-token"
EDITOR_ID = "user_editor_1"


class TokenTableIdentityProvider:
    """
    Identity provider that knows a fixed set of bearer tokens.

    No Authorization header → SESSION_MISSING; unknown token → SESSION_INVALID.
    `calls` counts lookups so tests can assert the gate was (not) reached.
    """

    def __init__(self, tokens: Optional[Dict[str, Caller]] = None):
        if tokens is None:
            tokens = {
                VALID_TOKEN: Caller(id=ADMIN_ID, role="admin"),
                EDITOR_TOKEN: Caller(id=EDITOR_ID, role="editor"),
            }
        self.tokens = tokens
        self.calls = 0

    async def resolve_caller(self, request: Request) -> Caller:
        self.calls += 1
        authorization = request.headers.get("authorization")
        if not authorization:
            raise AuthenticationError(AuthFailure.SESSION_MISSING)
        token = authorization.removeprefix("Bearer ").strip()
        if token not in self.tokens:
            raise AuthenticationError(AuthFailure.SESSION_INVALID)
        return self.tokens[token]


class ManualClock:
    """Millisecond clock that only moves when a test advances it."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


def make_request(
    method: str = "GET",
    path: str = "/",
    headers: Optional[Dict[str, str]] = None,
    client: Optional[tuple] = ("127.0.0.1", 50000),
) -> Request:
    """Build a bare Starlette Request for unit tests that need no app."""
    raw_headers = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in (headers or {}).items()
    ]
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": raw_headers,
        "client": client,
        "server": ("test", 80),
        "scheme": "http",
        "path_params": {},
    }
    return Request(scope)


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = course
        result = await course_service.get_course(mock_db_session, course_id)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def identity_provider():
    return TokenTableIdentityProvider()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def rate_limiter(clock):
    return RateLimiter(clock=clock)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {VALID_TOKEN}"}


@pytest.fixture
def editor_headers():
    return {"Authorization": f"Bearer {EDITOR_TOKEN}"}


@pytest.fixture
def sample_course_data():
    """Fields of a stored course row."""
    now = datetime.now(timezone.utc)
    return {
        "id": uuid4(),
        "title": "Les bases du français",
        "description": "<p>Salutations et présentations</p>",
        "level": "beginner",
        "category": "grammar",
        "image_url": None,
        "is_published": True,
        "sort_order": 1,
        "estimated_duration_hours": 4,
        "created_by": ADMIN_ID,
        "created_at": now,
        "updated_at": now,
    }


@pytest.fixture
def sample_user_data():
    """Fields of a stored learner row."""
    now = datetime.now(timezone.utc)
    return {
        "id": uuid4(),
        "email": "camille@example.fr",
        "first_name": "Camille",
        "last_name": "Durand",
        "profile_image_url": None,
        "current_level": "intermediate",
        "total_points": 1250,
        "streak_days": 12,
        "last_activity_at": now,
        "preferences": {"daily_goal_minutes": 15},
        "created_at": now,
        "updated_at": now,
    }


@pytest_asyncio.fixture
async def test_client(identity_provider, rate_limiter):
    """
    HTTPX AsyncClient talking to a fresh app instance.

    Each test gets its own app, identity provider and rate limiter, so
    request counts never leak between tests.
    """
    from spoken_admin.main import create_app

    app = create_app(identity_provider=identity_provider, rate_limiter=rate_limiter)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
