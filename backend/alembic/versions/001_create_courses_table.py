"""Create courses table

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000+00:00

What:  Creates the `courses` table managed by the admin API.
How:   PostgreSQL UUID primary key and TIMESTAMP WITH TIME ZONE columns;
       see spoken_admin/models/course.py for the column rationale.

Rollback: downgrade() drops the table (destructive, all course data lost).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("level", sa.String(20), nullable=False),
        sa.Column(
            "category",
            sa.String(100),
            nullable=False,
            server_default=sa.text("'general'"),
        ),
        sa.Column("image_url", sa.String(2048), nullable=True),
        sa.Column(
            "is_published",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "sort_order",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column("estimated_duration_hours", sa.Integer(), nullable=True),
        sa.Column(
            "created_by",
            sa.String(255),
            nullable=True,
            comment="Identity-provider user id of the creating admin",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "level IN ('beginner', 'intermediate', 'advanced')",
            name="ck_courses_level",
        ),
    )

    op.create_index("idx_courses_published_sort", "courses", ["is_published", "sort_order"])
    op.create_index("idx_courses_level", "courses", ["level"])


def downgrade() -> None:
    op.drop_index("idx_courses_level", table_name="courses")
    op.drop_index("idx_courses_published_sort", table_name="courses")
    op.drop_table("courses")
