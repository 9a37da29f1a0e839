"""
Spoken Admin API — Course SQLAlchemy Model
============================================

What:  ORM model for the `courses` table.
Who:   Used by CourseService for CRUD operations and by Alembic for migrations.

Table Design Rationale:
    - UUID primary key: non-sequential, safe to expose in URLs
    - level: short enum-like string (beginner | intermediate | advanced),
      validated at the API boundary by CourseCreate
    - is_published: drafts are visible to admins only; the mobile app reads
      published rows
    - sort_order: manual ordering inside the course catalogue
    - created_by: identity-provider user id of the admin who created the row

Indexes:
    (is_published, sort_order): the admin list screen and the app catalogue
    both filter on publication state and order by sort_order.
    level: level filter on the admin list screen.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from spoken_admin.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Course(Base):
    __tablename__ = "courses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    level: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="general",
        server_default=text("'general'"),
    )
    image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    is_published: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    sort_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    estimated_duration_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Identity-provider user id of the creating admin",
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
        Index("idx_courses_published_sort", "is_published", "sort_order"),
        Index("idx_courses_level", "level"),
    )

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, title='{self.title}', published={self.is_published})>"
