"""
Spoken Admin API — Learner Route Handlers
===========================================

What:  GET /api/users and GET/PUT/DELETE /api/users/{user_id}.
Why:   The dashboard's user screen searches learners, corrects their profile
       and removes accounts.
How:   Same pattern as routes/courses.py, with one more gate: every route
       requires the admin role, checked by the pipeline after authentication.

Route Configuration:
    ┌──────────────────────────────┬──────┬───────┬──────────────┬────────────┐
    │ Route                        │ Auth │ Role  │ Rate limit   │ Body schema│
    ├──────────────────────────────┼──────┼───────┼──────────────┼────────────┤
    │ GET    /api/users            │ yes  │ admin │ 100 / 15 min │ -          │
    │ GET    /api/users/{id}       │ yes  │ admin │ 100 / 15 min │ -          │
    │ PUT    /api/users/{id}       │ yes  │ admin │  20 / 15 min │ UserUpdate │
    │ DELETE /api/users/{id}       │ yes  │ admin │  20 / 15 min │ -          │
    └──────────────────────────────┴──────┴───────┴──────────────┴────────────┘

    There is no POST: accounts are created by the app's sign-up flow, and
    the router answers 405 for it.
"""

import logging
import uuid

from fastapi import APIRouter

from spoken_admin.database import session_scope
from spoken_admin.middleware.auth import UserRole
from spoken_admin.middleware.pipeline import ApiPipeline, RequestContext, RouteConfig
from spoken_admin.middleware.sanitize import sanitize
from spoken_admin.middleware.validation import PydanticSchema
from spoken_admin.routes.common import ERROR_RESPONSES, READ_LIMIT, WRITE_LIMIT, parse_uuid_param
from spoken_admin.schemas.common import ErrorResponse
from spoken_admin.schemas.user import (
    UserDeletedResponse,
    UserListResponse,
    UserResponse,
    UserSearchParams,
    UserUpdate,
)
from spoken_admin.services.audit import record_audit_event
from spoken_admin.services.user_service import user_service

logger = logging.getLogger(__name__)

LIST_USERS = RouteConfig(rate_limit=READ_LIMIT, required_role=UserRole.ADMIN)
GET_USER = RouteConfig(rate_limit=READ_LIMIT, required_role=UserRole.ADMIN)
UPDATE_USER = RouteConfig(
    validate_schema=PydanticSchema(UserUpdate),
    rate_limit=WRITE_LIMIT,
    required_role=UserRole.ADMIN,
)
DELETE_USER = RouteConfig(rate_limit=WRITE_LIMIT, required_role=UserRole.ADMIN)

search_schema = PydanticSchema(UserSearchParams)

_ADMIN_RESPONSES = {
    403: {"description": "Caller is not an admin", "model": ErrorResponse},
    **ERROR_RESPONSES,
}


def parse_user_id(ctx: RequestContext) -> uuid.UUID:
    return parse_uuid_param(ctx, "user_id", "User id")


# ══════════════════════════════════════════════════════════════════════════
# Handlers
# ══════════════════════════════════════════════════════════════════════════


async def list_users(ctx: RequestContext) -> UserListResponse:
    """List learners, newest first. Empty query values count as absent."""
    query = {key: value for key, value in ctx.request.query_params.items() if value}
    params: UserSearchParams = search_schema.parse(sanitize(query))

    async with session_scope() as db:
        return await user_service.list_users(db, params)


async def get_user(ctx: RequestContext) -> UserResponse:
    user_id = parse_user_id(ctx)

    async with session_scope() as db:
        return await user_service.get_user(db, user_id)


async def update_user(ctx: RequestContext) -> UserResponse:
    """Edit a learner's profile."""
    user_id = parse_user_id(ctx)
    data: UserUpdate = ctx.body

    async with session_scope() as db:
        user = await user_service.update_user(db, user_id, data)

    record_audit_event(
        "user.update",
        "user",
        user_id=ctx.caller_id,
        resource_id=str(user_id),
        request=ctx.request,
        fields=sorted(data.model_fields_set),
    )
    return user


async def delete_user(ctx: RequestContext) -> UserDeletedResponse:
    """Delete a learner account. Admins cannot delete their own."""
    user_id = parse_user_id(ctx)

    async with session_scope() as db:
        await user_service.delete_user(db, user_id, acting_user_id=ctx.caller_id)

    record_audit_event(
        "user.delete",
        "user",
        user_id=ctx.caller_id,
        resource_id=str(user_id),
        request=ctx.request,
    )
    return UserDeletedResponse()


# ══════════════════════════════════════════════════════════════════════════
# Router
# ══════════════════════════════════════════════════════════════════════════


def build_router(pipeline: ApiPipeline) -> APIRouter:
    """Mount the learner handlers behind `pipeline`."""
    router = APIRouter(prefix="/api", tags=["Users"])

    router.add_api_route(
        "/users",
        pipeline.wrap(list_users, LIST_USERS),
        methods=["GET"],
        summary="List learners",
        description=(
            "Paginated learner list, newest first. `search` matches the email "
            "or full name; `level` filters on the current level."
        ),
        responses={200: {"model": UserListResponse}, **_ADMIN_RESPONSES},
    )
    router.add_api_route(
        "/users/{user_id}",
        pipeline.wrap(get_user, GET_USER),
        methods=["GET"],
        summary="Get a learner",
        responses={
            200: {"model": UserResponse},
            404: {"description": "User not found", "model": ErrorResponse},
            **_ADMIN_RESPONSES,
        },
    )
    router.add_api_route(
        "/users/{user_id}",
        pipeline.wrap(update_user, UPDATE_USER),
        methods=["PUT"],
        summary="Update a learner",
        responses={
            200: {"model": UserResponse},
            404: {"description": "User not found", "model": ErrorResponse},
            409: {"description": "Email is already in use", "model": ErrorResponse},
            **_ADMIN_RESPONSES,
        },
    )
    router.add_api_route(
        "/users/{user_id}",
        pipeline.wrap(delete_user, DELETE_USER),
        methods=["DELETE"],
        summary="Delete a learner",
        responses={
            200: {"model": UserDeletedResponse},
            404: {"description": "User not found", "model": ErrorResponse},
            **_ADMIN_RESPONSES,
        },
    )

    return router
