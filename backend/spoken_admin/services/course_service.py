"""
Spoken Admin API — Course Service
===================================

What:  Business logic for the course catalogue: list, fetch, create, update,
       delete.
Why:   Keeps SQL and course rules out of the route handlers, so they can be
       tested with a mocked session and no HTTP layer.
How:   Stateless methods that receive an AsyncSession per call. Database
       failures are wrapped in DatabaseError (generic client message, details
       logged); NotFoundError and ConflictError propagate as-is.
Who:   Called by the handlers in routes/courses.py.

Listing Strategy:
    The admin list screen shows a page of courses plus counts for the whole
    filtered set, so one call runs two queries:
        1. SELECT count(*), count(*) FILTER (WHERE is_published) ... WHERE <filters>
        2. SELECT * ... WHERE <filters> ORDER BY sort_order, created_at DESC
           OFFSET (page - 1) * limit LIMIT limit

    Offset pagination (not cursor) because the screen jumps to numbered pages
    and the table holds hundreds of rows, not millions.
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Any, List

from sqlalchemy import delete, desc, false, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from spoken_admin.exceptions import ConflictError, DatabaseError, NotFoundError
from spoken_admin.models.course import Course
from spoken_admin.schemas.course import (
    CourseCreate,
    CourseListResponse,
    CourseResponse,
    CourseSearchParams,
    CourseStats,
    CourseUpdate,
    Pagination,
)
from spoken_admin.services.search import LIKE_ESCAPE, contains_pattern

logger = logging.getLogger(__name__)


class CourseService:
    """
    Business logic layer for course operations.

    Responsibilities:
        - list_courses():  filtered, paginated listing with catalogue stats
        - get_course():    single course with not-found handling
        - create_course(): insert owned by the calling admin
        - update_course(): partial update of the fields sent
        - delete_course(): hard delete with not-found handling
    """

    @staticmethod
    def build_filters(params: CourseSearchParams) -> List[Any]:
        """
        Translate search parameters into WHERE clauses.

        "all" and empty values mean "no filter". status="archived" matches
        nothing: courses have no archived state.
        """
        filters: List[Any] = []

        if params.search:
            pattern = contains_pattern(params.search)
            filters.append(
                or_(
                    Course.title.ilike(pattern, escape=LIKE_ESCAPE),
                    Course.description.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )

        if params.level != "all":
            filters.append(Course.level == params.level)

        if params.category:
            filters.append(Course.category == params.category)

        if params.status == "published":
            filters.append(Course.is_published.is_(True))
        elif params.status == "draft":
            filters.append(Course.is_published.is_(False))
        elif params.status == "archived":
            filters.append(false())

        return filters

    async def list_courses(
        self,
        db: AsyncSession,
        params: CourseSearchParams,
    ) -> CourseListResponse:
        """
        Return one page of courses matching `params` plus stats for all matches.

        Raises:
            DatabaseError: either query failed
        """
        filters = self.build_filters(params)

        try:
            stats_query = select(
                func.count(Course.id),
                func.count(Course.id).filter(Course.is_published.is_(True)),
            ).where(*filters)
            stats_result = await db.execute(stats_query)
            total, published = stats_result.one()
            total = total or 0
            published = published or 0

            page_query = (
                select(Course)
                .where(*filters)
                .order_by(Course.sort_order, desc(Course.created_at))
                .offset((params.page - 1) * params.limit)
                .limit(params.limit)
            )
            page_result = await db.execute(page_query)
            courses = list(page_result.scalars().all())
        except Exception as e:
            logger.error("Database error listing courses: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve courses. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return CourseListResponse(
            courses=[CourseResponse.model_validate(course) for course in courses],
            pagination=Pagination(
                page=params.page,
                limit=params.limit,
                total=total,
                pages=math.ceil(total / params.limit) if total else 0,
            ),
            stats=CourseStats(
                total_courses=total,
                published_courses=published,
                draft_courses=total - published,
            ),
        )

    async def get_course(self, db: AsyncSession, course_id: uuid.UUID) -> CourseResponse:
        """
        Fetch one course by id.

        Raises:
            NotFoundError: no course with that id
            DatabaseError: the query failed
        """
        try:
            result = await db.execute(select(Course).where(Course.id == course_id))
            course = result.scalar_one_or_none()
        except Exception as e:
            logger.error("Database error fetching course %s: %s", course_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the course. Please try again.",
                context={"course_id": str(course_id)},
            )

        if course is None:
            raise NotFoundError(resource="course", resource_id=str(course_id))

        return CourseResponse.model_validate(course)

    async def create_course(
        self,
        db: AsyncSession,
        data: CourseCreate,
        created_by: str | None,
    ) -> CourseResponse:
        """
        Insert a course created by `created_by`.

        The description arrives already cleaned by CourseCreate.

        Raises:
            ConflictError: the row violates a table constraint
            DatabaseError: any other database failure
        """
        now = datetime.now(timezone.utc)
        course = Course(
            id=uuid.uuid4(),
            title=data.title,
            description=data.description,
            level=data.level.value,
            category=data.category,
            image_url=str(data.image_url) if data.image_url else None,
            is_published=data.is_published,
            sort_order=data.sort_order,
            estimated_duration_hours=data.estimated_duration_hours,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )

        try:
            db.add(course)
            await db.flush()
        except IntegrityError as e:
            logger.warning("Course insert rejected by constraint: %s", str(e.orig))
            raise ConflictError(
                message="The course conflicts with an existing record",
                context={"title": data.title},
            )
        except Exception as e:
            logger.error("Database error creating course: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the course. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Course created: %s (%s) by %s", course.id, course.title, created_by)
        return CourseResponse.model_validate(course)

    async def update_course(
        self,
        db: AsyncSession,
        course_id: uuid.UUID,
        data: CourseUpdate,
    ) -> CourseResponse:
        """
        Write the fields present in `data` to an existing course.

        Raises:
            NotFoundError: no course with that id
            ConflictError: the new values violate a table constraint
            DatabaseError: any other database failure
        """
        changes = data.model_dump(exclude_unset=True, mode="json")

        try:
            result = await db.execute(select(Course).where(Course.id == course_id))
            course = result.scalar_one_or_none()
        except Exception as e:
            logger.error("Database error fetching course %s: %s", course_id, str(e))
            raise DatabaseError(
                message="Could not update the course. Please try again.",
                context={"course_id": str(course_id)},
            )

        if course is None:
            raise NotFoundError(resource="course", resource_id=str(course_id))

        for name, value in changes.items():
            setattr(course, name, value)
        course.updated_at = datetime.now(timezone.utc)

        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning("Course update rejected by constraint: %s", str(e.orig))
            raise ConflictError(
                message="The course conflicts with an existing record",
                context={"course_id": str(course_id)},
            )
        except Exception as e:
            logger.error("Database error updating course %s: %s", course_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update the course. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Course updated: %s (fields: %s)", course_id, ", ".join(sorted(changes)))
        return CourseResponse.model_validate(course)

    async def delete_course(self, db: AsyncSession, course_id: uuid.UUID) -> None:
        """
        Delete a course.

        Raises:
            NotFoundError: no course with that id
            DatabaseError: the statement failed
        """
        try:
            result = await db.execute(delete(Course).where(Course.id == course_id))
        except Exception as e:
            logger.error("Database error deleting course %s: %s", course_id, str(e))
            raise DatabaseError(
                message="Could not delete the course. Please try again.",
                context={"course_id": str(course_id)},
            )

        if not result.rowcount:
            raise NotFoundError(resource="course", resource_id=str(course_id))

        logger.info("Course deleted: %s", course_id)


# Stateless: one shared instance
course_service = CourseService()
