"""
Spoken Admin API — Course Request/Response Schemas
====================================================

What:  Pydantic models defining the course API contract.
Why:   The same models serve as the pipeline's body schemas (CourseCreate,
       CourseUpdate), the query-string schema (CourseSearchParams) and the
       response shapes.
How:   Wrapped in PydanticSchema so validation failures come back as the full
       list of field errors instead of the first one.

Rich Text:
    description is cleaned with sanitize_html() BEFORE its length rules run,
    so a description made only of stripped markup ("<script>x</script>") is
    rejected as empty instead of being stored as "".

Coercion:
    CourseSearchParams runs in pydantic's lax mode, so "5" from a query string
    becomes 5 and absent parameters fall back to their defaults.
    CourseCreate.is_published is strict: "true" is rejected, only JSON booleans
    are accepted.
"""

import enum
import uuid
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, HttpUrl, field_validator, model_validator

from spoken_admin.middleware.sanitize import sanitize_html


class CourseLevel(str, enum.Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class CourseCreate(BaseModel):
    """
    Body of POST /api/courses.

    Required: title, description, level. Everything else has a default.
    Strings are stripped before length checks.
    """
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=1000)
    level: CourseLevel
    category: str = Field(default="general", min_length=1, max_length=100)
    image_url: Optional[HttpUrl] = None
    is_published: bool = Field(default=False, strict=True)
    sort_order: int = Field(default=0, ge=0)
    estimated_duration_hours: Optional[int] = Field(default=None, ge=0, le=1000)

    model_config = {"str_strip_whitespace": True}

    @field_validator("description", mode="before")
    @classmethod
    def clean_description(cls, value: Any) -> Any:
        return sanitize_html(value) if isinstance(value, str) else value


# Columns that cannot be set to NULL through an update
_NON_NULLABLE_FIELDS = ("title", "description", "level", "category", "is_published", "sort_order")


class CourseUpdate(BaseModel):
    """
    Body of PUT /api/courses/{course_id}: a partial update.

    Only the fields present in the body are written. At least one is needed,
    and only image_url and estimated_duration_hours may be set to null.
    """
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    level: Optional[CourseLevel] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    image_url: Optional[HttpUrl] = None
    is_published: Optional[bool] = Field(default=None, strict=True)
    sort_order: Optional[int] = Field(default=None, ge=0)
    estimated_duration_hours: Optional[int] = Field(default=None, ge=0, le=1000)

    model_config = {"str_strip_whitespace": True}

    @field_validator("description", mode="before")
    @classmethod
    def clean_description(cls, value: Any) -> Any:
        return sanitize_html(value) if isinstance(value, str) else value

    @model_validator(mode="after")
    def check_fields_present(self) -> "CourseUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        nulled = [
            name
            for name in _NON_NULLABLE_FIELDS
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if nulled:
            raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
        return self


class CourseSearchParams(BaseModel):
    """Query string of GET /api/courses."""
    page: int = Field(default=1, ge=1, le=1000)
    limit: int = Field(default=10, ge=1, le=100)
    search: str = Field(default="", max_length=100)
    level: Literal["beginner", "intermediate", "advanced", "all"] = "all"
    status: Literal["draft", "published", "archived", "all"] = "all"
    category: str = Field(default="", max_length=100)

    model_config = {"str_strip_whitespace": True}


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class CourseResponse(BaseModel):
    """Full representation of a course."""
    id: uuid.UUID
    title: str
    description: str
    level: str
    category: str
    image_url: Optional[str] = None
    is_published: bool
    sort_order: int
    estimated_duration_hours: Optional[int] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class CourseStats(BaseModel):
    """
    Counts over every course matching the filters (not just the current page).

    archived_courses is always 0: courses have no archived state yet.
    """
    total_courses: int
    published_courses: int
    draft_courses: int
    archived_courses: int = 0


class CourseListResponse(BaseModel):
    courses: List[CourseResponse]
    pagination: Pagination
    stats: CourseStats


class CourseCreatedResponse(BaseModel):
    course: CourseResponse
    message: str = "Course created successfully"
