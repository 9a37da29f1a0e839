"""
Spoken Admin API — Learner Service
====================================

What:  Business logic for learner accounts: list, fetch, update, delete.
Why:   Support staff fix profile details and remove accounts from the admin
       dashboard; the rules for that (unique emails, no self-deletion) live
       here rather than in the handlers.
How:   Same shape as CourseService: stateless methods receiving an
       AsyncSession, DatabaseError for unexpected failures, NotFoundError /
       ConflictError / ForbiddenError for rule violations.
Who:   Called by the handlers in routes/users.py.

Email Changes:
    An update that changes the email first looks for another account with
    that address and answers 409 when one exists. Two concurrent updates can
    still race past the check; the unique index then rejects the second
    flush, which is reported the same way.
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Any, List

from sqlalchemy import delete, desc, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from spoken_admin.exceptions import (
    ConflictError,
    DatabaseError,
    ForbiddenError,
    NotFoundError,
)
from spoken_admin.models.user import User
from spoken_admin.schemas.user import (
    UserListResponse,
    UserPagination,
    UserResponse,
    UserSearchParams,
    UserUpdate,
)
from spoken_admin.services.search import LIKE_ESCAPE, contains_pattern

logger = logging.getLogger(__name__)

EMAIL_IN_USE_MESSAGE = "Email is already in use"


class UserService:
    """
    Business logic layer for learner accounts.

    Responsibilities:
        - list_users():  search and level filter, newest first, paginated
        - get_user():    single account with not-found handling
        - update_user(): profile edit with email uniqueness
        - delete_user(): removal, refusing the caller's own account
    """

    @staticmethod
    def build_filters(params: UserSearchParams) -> List[Any]:
        filters: List[Any] = []

        if params.search:
            pattern = contains_pattern(params.search)
            full_name = func.concat(
                func.coalesce(User.first_name, ""),
                " ",
                func.coalesce(User.last_name, ""),
            )
            filters.append(
                or_(
                    User.email.ilike(pattern, escape=LIKE_ESCAPE),
                    full_name.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )

        if params.level != "all":
            filters.append(User.current_level == params.level)

        return filters

    async def list_users(self, db: AsyncSession, params: UserSearchParams) -> UserListResponse:
        """
        Return one page of learners matching `params`.

        Raises:
            DatabaseError: either query failed
        """
        filters = self.build_filters(params)

        try:
            count_result = await db.execute(select(func.count(User.id)).where(*filters))
            total = count_result.scalar_one() or 0

            page_query = (
                select(User)
                .where(*filters)
                .order_by(desc(User.created_at))
                .offset((params.page - 1) * params.limit)
                .limit(params.limit)
            )
            page_result = await db.execute(page_query)
            users = list(page_result.scalars().all())
        except Exception as e:
            logger.error("Database error listing users: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve users. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return UserListResponse(
            users=[UserResponse.model_validate(user) for user in users],
            pagination=UserPagination(
                page=params.page,
                limit=params.limit,
                total=total,
                pages=math.ceil(total / params.limit) if total else 0,
                has_next=params.page * params.limit < total,
                has_prev=params.page > 1,
            ),
        )

    async def get_user(self, db: AsyncSession, user_id: uuid.UUID) -> UserResponse:
        """
        Raises:
            NotFoundError: no account with that id
            DatabaseError: the query failed
        """
        user = await self._fetch(db, user_id)
        return UserResponse.model_validate(user)

    async def update_user(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        data: UserUpdate,
    ) -> UserResponse:
        """
        Write the fields present in `data` to an existing account.

        Raises:
            NotFoundError: no account with that id
            ConflictError: the new email belongs to another account
            DatabaseError: any other database failure
        """
        user = await self._fetch(db, user_id)
        changes = data.model_dump(exclude_unset=True, mode="json")

        if changes["email"] != user.email:
            try:
                taken = await db.execute(
                    select(User.id).where(User.email == changes["email"], User.id != user_id)
                )
                other_id = taken.scalar_one_or_none()
            except Exception as e:
                logger.error("Database error checking email for %s: %s", user_id, str(e))
                raise DatabaseError(
                    message="Could not update the user. Please try again.",
                    context={"user_id": str(user_id)},
                )
            if other_id is not None:
                raise ConflictError(message=EMAIL_IN_USE_MESSAGE, context={"user_id": str(user_id)})

        for name, value in changes.items():
            setattr(user, name, value)
        user.updated_at = datetime.now(timezone.utc)

        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning("User update rejected by constraint: %s", str(e.orig))
            raise ConflictError(message=EMAIL_IN_USE_MESSAGE, context={"user_id": str(user_id)})
        except Exception as e:
            logger.error("Database error updating user %s: %s", user_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update the user. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("User updated: %s (fields: %s)", user_id, ", ".join(sorted(changes)))
        return UserResponse.model_validate(user)

    async def delete_user(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        acting_user_id: str | None,
    ) -> None:
        """
        Delete an account. Only the `users` row is removed here; the app's
        progress and achievement tables are not part of this schema.

        Raises:
            ForbiddenError: the caller tried to delete their own account
            NotFoundError:  no account with that id
            DatabaseError:  the statement failed
        """
        if acting_user_id is not None and str(user_id) == acting_user_id:
            raise ForbiddenError(
                message="You cannot delete your own account",
                context={"user_id": acting_user_id},
            )

        try:
            result = await db.execute(delete(User).where(User.id == user_id))
        except Exception as e:
            logger.error("Database error deleting user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not delete the user. Please try again.",
                context={"user_id": str(user_id)},
            )

        if not result.rowcount:
            raise NotFoundError(resource="user", resource_id=str(user_id))

        logger.info("User deleted: %s by %s", user_id, acting_user_id)

    @staticmethod
    async def _fetch(db: AsyncSession, user_id: uuid.UUID) -> User:
        try:
            result = await db.execute(select(User).where(User.id == user_id))
            user = result.scalar_one_or_none()
        except Exception as e:
            logger.error("Database error fetching user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the user. Please try again.",
                context={"user_id": str(user_id)},
            )

        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user


# Stateless: one shared instance
user_service = UserService()
