"""
Spoken Admin API — Course Route Handlers
==========================================

What:  GET/POST /api/courses and GET/PUT/DELETE /api/courses/{course_id}.
Why:   The admin dashboard's course screens list, create, inspect, edit and
       remove courses through these endpoints.
How:   Each handler takes a RequestContext and is wrapped by the application's
       ApiPipeline with its own RouteConfig. By the time a handler runs, the
       caller is authenticated and (for POST and PUT) the body is a validated
       CourseCreate or CourseUpdate.

Route Configuration:
    ┌──────────────────────────────┬──────┬─────────────────┬──────────────┐
    │ Route                        │ Auth │ Rate limit      │ Body schema  │
    ├──────────────────────────────┼──────┼─────────────────┼──────────────┤
    │ GET    /api/courses          │ yes  │ 100 / 15 min    │ -            │
    │ POST   /api/courses          │ yes  │  20 / 15 min    │ CourseCreate │
    │ GET    /api/courses/{id}     │ yes  │ 100 / 15 min    │ -            │
    │ PUT    /api/courses/{id}     │ yes  │  20 / 15 min    │ CourseUpdate │
    │ DELETE /api/courses/{id}     │ yes  │  20 / 15 min    │ -            │
    └──────────────────────────────┴──────┴─────────────────┴──────────────┘

    Query strings and path parameters are validated inside the handlers;
    a SchemaValidationError raised there is rendered by the pipeline as the
    same 400 envelope as a body validation failure.
"""

import logging
import uuid
from typing import Dict

from fastapi import APIRouter
from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse

from spoken_admin.database import session_scope
from spoken_admin.middleware.pipeline import ApiPipeline, RequestContext, RouteConfig
from spoken_admin.middleware.sanitize import sanitize
from spoken_admin.middleware.validation import PydanticSchema
from spoken_admin.routes.common import ERROR_RESPONSES, READ_LIMIT, WRITE_LIMIT, parse_uuid_param
from spoken_admin.schemas.common import ErrorResponse
from spoken_admin.schemas.course import (
    CourseCreate,
    CourseCreatedResponse,
    CourseListResponse,
    CourseResponse,
    CourseSearchParams,
    CourseUpdate,
)
from spoken_admin.services.audit import record_audit_event
from spoken_admin.services.course_service import course_service

logger = logging.getLogger(__name__)

LIST_COURSES = RouteConfig(require_auth=True, rate_limit=READ_LIMIT)
CREATE_COURSE = RouteConfig(
    require_auth=True,
    validate_schema=PydanticSchema(CourseCreate),
    rate_limit=WRITE_LIMIT,
)
GET_COURSE = RouteConfig(require_auth=True, rate_limit=READ_LIMIT)
UPDATE_COURSE = RouteConfig(
    require_auth=True,
    validate_schema=PydanticSchema(CourseUpdate),
    rate_limit=WRITE_LIMIT,
)
DELETE_COURSE = RouteConfig(require_auth=True, rate_limit=WRITE_LIMIT)

search_schema = PydanticSchema(CourseSearchParams)


def parse_course_id(ctx: RequestContext) -> uuid.UUID:
    return parse_uuid_param(ctx, "course_id", "Course id")


# ══════════════════════════════════════════════════════════════════════════
# Handlers
# ══════════════════════════════════════════════════════════════════════════


async def list_courses(ctx: RequestContext) -> CourseListResponse:
    """
    List courses with search, filters and pagination.

    Empty query values (e.g. `?level=`) are treated as absent so the admin UI
    can send its whole filter form unchanged.
    """
    query = {key: value for key, value in ctx.request.query_params.items() if value}
    params: CourseSearchParams = search_schema.parse(sanitize(query))

    async with session_scope() as db:
        return await course_service.list_courses(db, params)


async def create_course(ctx: RequestContext) -> JSONResponse:
    """Create a course owned by the calling admin."""
    data: CourseCreate = ctx.body

    async with session_scope() as db:
        course = await course_service.create_course(db, data, created_by=ctx.caller_id)

    record_audit_event(
        "course.create",
        "course",
        user_id=ctx.caller_id,
        resource_id=str(course.id),
        request=ctx.request,
        title=course.title,
    )

    payload = CourseCreatedResponse(course=course)
    return JSONResponse(status_code=201, content=jsonable_encoder(payload))


async def get_course(ctx: RequestContext) -> CourseResponse:
    """Return one course, drafts included."""
    course_id = parse_course_id(ctx)

    async with session_scope() as db:
        return await course_service.get_course(db, course_id)


async def update_course(ctx: RequestContext) -> CourseResponse:
    """Apply a partial update to a course."""
    course_id = parse_course_id(ctx)
    data: CourseUpdate = ctx.body

    async with session_scope() as db:
        course = await course_service.update_course(db, course_id, data)

    record_audit_event(
        "course.update",
        "course",
        user_id=ctx.caller_id,
        resource_id=str(course_id),
        request=ctx.request,
        fields=sorted(data.model_fields_set),
    )
    return course


async def delete_course(ctx: RequestContext) -> Dict[str, str]:
    """Delete a course permanently."""
    course_id = parse_course_id(ctx)

    async with session_scope() as db:
        await course_service.delete_course(db, course_id)

    record_audit_event(
        "course.delete",
        "course",
        user_id=ctx.caller_id,
        resource_id=str(course_id),
        request=ctx.request,
    )
    return {"id": str(course_id), "message": "Course deleted successfully"}


# ══════════════════════════════════════════════════════════════════════════
# Router
# ══════════════════════════════════════════════════════════════════════════


def build_router(pipeline: ApiPipeline) -> APIRouter:
    """Mount the course handlers behind `pipeline`."""
    router = APIRouter(prefix="/api", tags=["Courses"])

    router.add_api_route(
        "/courses",
        pipeline.wrap(list_courses, LIST_COURSES),
        methods=["GET"],
        summary="List courses",
        description=(
            "Paginated course list for the admin dashboard, drafts included. "
            "Supports search over title and description, level, category and "
            "status filters. Stats cover every course matching the filters."
        ),
        responses={200: {"model": CourseListResponse}, **ERROR_RESPONSES},
    )
    router.add_api_route(
        "/courses",
        pipeline.wrap(create_course, CREATE_COURSE),
        methods=["POST"],
        status_code=201,
        summary="Create a course",
        description="Creates a course. The description may contain basic formatting tags.",
        responses={201: {"model": CourseCreatedResponse}, **ERROR_RESPONSES},
    )
    router.add_api_route(
        "/courses/{course_id}",
        pipeline.wrap(get_course, GET_COURSE),
        methods=["GET"],
        summary="Get a course",
        responses={
            200: {"model": CourseResponse},
            404: {"description": "Course not found", "model": ErrorResponse},
            **ERROR_RESPONSES,
        },
    )
    router.add_api_route(
        "/courses/{course_id}",
        pipeline.wrap(update_course, UPDATE_COURSE),
        methods=["PUT"],
        summary="Update a course",
        description="Writes only the fields present in the body.",
        responses={
            200: {"model": CourseResponse},
            404: {"description": "Course not found", "model": ErrorResponse},
            409: {"description": "Constraint violation", "model": ErrorResponse},
            **ERROR_RESPONSES,
        },
    )
    router.add_api_route(
        "/courses/{course_id}",
        pipeline.wrap(delete_course, DELETE_COURSE),
        methods=["DELETE"],
        summary="Delete a course",
        responses={
            404: {"description": "Course not found", "model": ErrorResponse},
            **ERROR_RESPONSES,
        },
    )

    return router
