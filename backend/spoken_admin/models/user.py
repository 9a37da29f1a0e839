"""
Spoken Admin API — Learner SQLAlchemy Model
=============================================

What:  ORM model for the `users` table (learners of the mobile app).
Who:   Used by UserService and by Alembic for migrations.

Table Design Rationale:
    - id: the identity provider's user id, so no default is generated here;
      rows are created by the sign-up flow, never by this API
    - email: unique, checked again by UserService before an email change so
      the client gets a 409 instead of a constraint error
    - current_level: same values as Course.level
    - total_points / streak_days: gamification counters written by the app
    - preferences: free-form JSON owned by the app

Indexes:
    email (unique): lookups and the uniqueness rule.
    created_at: the admin list is ordered newest first.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from spoken_admin.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    profile_image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    current_level: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="beginner",
        server_default=text("'beginner'"),
    )
    total_points: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    streak_days: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    last_activity_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    preferences: Mapped[Dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        server_default=text("'{}'::jsonb"),
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_users_email", "email", unique=True),
        Index("idx_users_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', level={self.current_level})>"
