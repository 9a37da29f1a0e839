"""
Spoken Admin API — Request Pipeline Tests
===========================================

What:  Drives ApiPipeline through a small FastAPI app with one route per
       configuration, over HTTPX's ASGI transport.

What we test:
    ✅ Gate order: rate limit → auth → role → validation → handler
    ✅ Every outcome's envelope and status
    ✅ Security headers on every branch
    ✅ Handler errors: application errors, development vs production bodies
    ✅ GET routes never validate a body
    ✅ RequestContext contents (caller, body, route params)
"""

from typing import Any, Dict
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from spoken_admin.exceptions import NotFoundError, SchemaValidationError
from spoken_admin.middleware.auth import UserRole
from spoken_admin.middleware.pipeline import (
    ApiPipeline,
    Forbidden,
    HandlerError,
    RateLimitConfig,
    RateLimited,
    RequestContext,
    RouteConfig,
    Success,
    Unauthorized,
    ValidationFailed,
)
from spoken_admin.middleware.security_headers import SECURITY_HEADERS
from spoken_admin.middleware.validation import PydanticSchema
from spoken_admin.schemas.common import FieldError
from tests.conftest import make_request


class LessonBody(BaseModel):
    title: str = Field(min_length=1)
    level: str = Field(pattern="^(beginner|intermediate|advanced)$")
    position: int = Field(default=0, ge=0)


LESSON_SCHEMA = PydanticSchema(LessonBody)
TWO_PER_WINDOW = RateLimitConfig(window_ms=900_000, max_requests=2)
ADMIN_ONLY = RouteConfig(validate_schema=LESSON_SCHEMA, required_role=UserRole.ADMIN)


async def echo(ctx: RequestContext) -> Dict[str, Any]:
    body = ctx.body.model_dump() if ctx.body is not None else None
    return {"caller_id": ctx.caller_id, "body": body, "params": ctx.route_params}


async def created(ctx: RequestContext) -> JSONResponse:
    return JSONResponse(status_code=201, content={"ok": True})


async def crash(ctx: RequestContext) -> None:
    raise RuntimeError("database password is hunter2")


async def missing(ctx: RequestContext) -> None:
    raise NotFoundError(resource="lesson", resource_id="42")


async def reject_query(ctx: RequestContext) -> None:
    raise SchemaValidationError([FieldError(path=["page"], message="bad page")])


def build_app(pipeline: ApiPipeline, schema_spy=None) -> FastAPI:
    app = FastAPI()
    routes = [
        ("/limited", ["GET"], echo, RouteConfig(require_auth=True, rate_limit=TWO_PER_WINDOW)),
        ("/public", ["GET"], echo, RouteConfig(require_auth=False)),
        ("/lessons", ["POST"], echo, RouteConfig(validate_schema=LESSON_SCHEMA)),
        ("/lessons/{lesson_id}", ["GET"], echo, RouteConfig()),
        ("/created", ["POST"], created, RouteConfig()),
        ("/crash", ["GET"], crash, RouteConfig(require_auth=False)),
        ("/missing", ["GET"], missing, RouteConfig()),
        ("/reject", ["GET"], reject_query, RouteConfig()),
        ("/admin-only", ["POST"], echo, ADMIN_ONLY),
    ]
    for path, methods, handler, config in routes:
        app.add_api_route(path, pipeline.wrap(handler, config), methods=methods)
    if schema_spy is not None:
        app.add_api_route(
            "/spied",
            pipeline.wrap(echo, RouteConfig(validate_schema=schema_spy)),
            methods=["GET", "POST"],
        )
    return app


@pytest.fixture
def pipeline(identity_provider, rate_limiter):
    return ApiPipeline(identity_provider, rate_limiter=rate_limiter)


@pytest.fixture
def schema_spy():
    spy = MagicMock()
    spy.parse.side_effect = lambda value: LessonBody.model_validate(value)
    return spy


@pytest_asyncio.fixture
async def client(pipeline, schema_spy):
    transport = ASGITransport(app=build_app(pipeline, schema_spy))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def assert_security_headers(response) -> None:
    for name, value in SECURITY_HEADERS.items():
        assert response.headers.get(name) == value, name
        assert len(response.headers.get_list(name)) == 1, name


class TestGateOrder:
    @pytest.mark.asyncio
    async def test_unauthenticated_requests_then_rate_limited(self, client):
        """Two admissions fail auth (401); the third is over budget (429)."""
        statuses = [(await client.get("/limited")).status_code for _ in range(3)]

        assert statuses == [401, 401, 429]

    @pytest.mark.asyncio
    async def test_rate_limit_reported_before_auth(self, client, identity_provider):
        await client.get("/limited")
        await client.get("/limited")
        calls_before = identity_provider.calls

        response = await client.get("/limited")

        assert response.status_code == 429
        assert response.json() == {"error": "Rate limit exceeded"}
        assert identity_provider.calls == calls_before

    @pytest.mark.asyncio
    async def test_auth_checked_before_validation(self, client, schema_spy):
        response = await client.post("/spied", json={"title": ""})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        schema_spy.parse.assert_not_called()

    @pytest.mark.asyncio
    async def test_separate_client_keys_have_separate_budgets(self, client, auth_headers):
        for _ in range(2):
            await client.get("/limited", headers={**auth_headers, "X-Forwarded-For": "1.1.1.1"})

        blocked = await client.get("/limited", headers={**auth_headers, "X-Forwarded-For": "1.1.1.1"})
        other = await client.get("/limited", headers={**auth_headers, "X-Forwarded-For": "2.2.2.2"})

        assert blocked.status_code == 429
        assert other.status_code == 200


class TestAuthGate:
    @pytest.mark.asyncio
    async def test_caller_id_passed_to_handler(self, client, auth_headers):
        response = await client.get("/lessons/abc", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["caller_id"] == "user_admin_1"
        assert response.json()["params"] == {"lesson_id": "abc"}

    @pytest.mark.asyncio
    async def test_invalid_token_is_plain_unauthorized(self, client):
        response = await client.get("/lessons/abc", headers={"Authorization": "Bearer forged"})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    @pytest.mark.asyncio
    async def test_public_route_skips_gate(self, client, identity_provider):
        response = await client.get("/public")

        assert response.status_code == 200
        assert response.json()["caller_id"] is None
        assert identity_provider.calls == 0


class TestRoleGate:
    @pytest.mark.asyncio
    async def test_admin_admitted(self, client, auth_headers):
        response = await client.post(
            "/admin-only", json={"title": "t", "level": "beginner"}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["caller_id"] == "user_admin_1"

    @pytest.mark.asyncio
    async def test_lower_role_forbidden_before_validation(self, client, editor_headers):
        response = await client.post("/admin-only", json={"title": ""}, headers=editor_headers)

        assert response.status_code == 403
        assert response.json() == {"error": "Forbidden"}
        assert_security_headers(response)

    @pytest.mark.asyncio
    async def test_anonymous_is_unauthorized_not_forbidden(self, client):
        response = await client.post("/admin-only", json={})

        assert response.status_code == 401

    def test_role_requires_auth(self):
        with pytest.raises(ValueError):
            RouteConfig(require_auth=False, required_role=UserRole.VIEWER)


class TestBodyValidation:
    @pytest.mark.asyncio
    async def test_valid_body_is_sanitized_and_coerced(self, client, auth_headers):
        response = await client.post(
            "/lessons",
            json={"title": "  Les articles  ", "level": "beginner", "position": "3"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["body"] == {"title": "Les articles", "level": "beginner", "position": 3}

    @pytest.mark.asyncio
    async def test_every_violation_reported(self, client, auth_headers):
        response = await client.post(
            "/lessons",
            json={"title": "ab", "position": -1},
            headers=auth_headers,
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation failed"
        paths = sorted(error["path"][0] for error in body["details"])
        assert paths == ["level", "position"]
        assert all(error["message"] for error in body["details"])

    @pytest.mark.asyncio
    async def test_malformed_json(self, client, auth_headers):
        response = await client.post(
            "/lessons",
            content=b"{not json",
            headers={**auth_headers, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["details"] == [
            {"path": [], "message": "Request body must be valid JSON"}
        ]

    @pytest.mark.asyncio
    async def test_get_with_schema_never_validates(self, client, auth_headers, schema_spy):
        response = await client.get("/spied", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["body"] is None
        schema_spy.parse.assert_not_called()

    @pytest.mark.asyncio
    async def test_post_with_schema_validates_once(self, client, auth_headers, schema_spy):
        response = await client.post(
            "/spied", json={"title": "t", "level": "advanced"}, headers=auth_headers
        )

        assert response.status_code == 200
        schema_spy.parse.assert_called_once()

    @pytest.mark.asyncio
    async def test_handler_raised_schema_error(self, client, auth_headers):
        response = await client.get("/reject", headers=auth_headers)

        assert response.status_code == 400
        assert response.json() == {
            "error": "Validation failed",
            "details": [{"path": ["page"], "message": "bad page"}],
        }


class TestHandlerExecution:
    @pytest.mark.asyncio
    async def test_handler_response_status_is_kept(self, client, auth_headers):
        response = await client.post("/created", headers=auth_headers)

        assert response.status_code == 201
        assert response.json() == {"ok": True}

    @pytest.mark.asyncio
    async def test_application_error_uses_its_status(self, client, auth_headers):
        response = await client.get("/missing", headers=auth_headers)

        assert response.status_code == 404
        assert response.json() == {"error": "lesson with ID '42' was not found"}

    @pytest.mark.asyncio
    async def test_production_hides_internals(self, client):
        response = await client.get("/crash")

        assert response.status_code == 500
        assert response.json() == {"error": "An internal error occurred"}
        assert "hunter2" not in response.text

    @pytest.mark.asyncio
    async def test_development_exposes_details(self, identity_provider, rate_limiter):
        pipeline = ApiPipeline(identity_provider, rate_limiter=rate_limiter, expose_error_details=True)
        transport = ASGITransport(app=build_app(pipeline))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/crash")

        body = response.json()
        assert response.status_code == 500
        assert body["details"] == "database password is hunter2"
        assert "RuntimeError" in body["stack"]
        assert_security_headers(response)


class TestSecurityHeaders:
    @pytest.mark.asyncio
    async def test_every_branch_carries_headers(self, client, auth_headers):
        responses = [
            await client.get("/lessons/1", headers=auth_headers),               # 200
            await client.post("/lessons", json={}, headers=auth_headers),       # 400
            await client.get("/lessons/1"),                                      # 401
            await client.get("/limited"),
            await client.get("/limited"),
            await client.get("/limited"),                                        # 429
            await client.get("/crash"),                                          # 500
        ]

        statuses = {response.status_code for response in responses}
        assert {200, 400, 401, 429, 500} <= statuses
        for response in responses:
            assert_security_headers(response)


class TestRunOutcomes:
    """run() returns the outcome before it is rendered."""

    @pytest.mark.asyncio
    async def test_outcome_types(self, pipeline, auth_headers):
        config = RouteConfig(rate_limit=RateLimitConfig(window_ms=1000, max_requests=1))

        authorized = make_request(headers=auth_headers)
        assert isinstance(await pipeline.run(authorized, echo, config), Success)
        assert isinstance(await pipeline.run(authorized, echo, config), RateLimited)

        assert isinstance(await pipeline.run(make_request(), echo, RouteConfig()), Unauthorized)
        editor = make_request(headers={"Authorization": "Bearer editor-token"})
        admin_only = RouteConfig(required_role=UserRole.ADMIN)
        assert isinstance(await pipeline.run(editor, echo, admin_only), Forbidden)
        assert isinstance(await pipeline.run(authorized, reject_query, RouteConfig()), ValidationFailed)

        outcome = await pipeline.run(make_request(), crash, RouteConfig(require_auth=False))
        assert outcome == HandlerError(status_code=500, message="An internal error occurred")

    def test_rate_limit_config_rejects_non_positive(self):
        with pytest.raises(ValueError):
            RateLimitConfig(window_ms=0, max_requests=1)
        with pytest.raises(ValueError):
            RateLimitConfig(window_ms=1000, max_requests=0)

    def test_each_pipeline_owns_its_limiter(self, identity_provider):
        first = ApiPipeline(identity_provider)
        second = ApiPipeline(identity_provider)
        assert first.rate_limiter is not second.rate_limiter
