"""
Spoken Admin API — Learner Request/Response Schemas
=====================================================

What:  Pydantic models for /api/users: search parameters, the update body and
       the response shapes.
Why:   Learner accounts are created by the app's sign-up flow; the admin API
       only lists, inspects, edits and removes them, so there is no create
       model.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, HttpUrl

from spoken_admin.schemas.course import CourseLevel

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class UserSearchParams(BaseModel):
    """
    Query string of GET /api/users.

    search matches the email or "first_name last_name", case-insensitively.
    """
    page: int = Field(default=1, ge=1, le=1000)
    limit: int = Field(default=50, ge=1, le=100)
    search: str = Field(default="", max_length=100)
    level: Literal["beginner", "intermediate", "advanced", "all"] = "all"

    model_config = {"str_strip_whitespace": True}


class UserUpdate(BaseModel):
    """
    Body of PUT /api/users/{user_id}.

    email and current_level are required. The optional fields are written
    only when present in the body; an explicit null clears them.
    """
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    current_level: CourseLevel
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    profile_image_url: Optional[HttpUrl] = None

    model_config = {"str_strip_whitespace": True}


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    current_level: str
    total_points: int
    streak_days: int
    last_activity_at: Optional[datetime] = None
    preferences: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserPagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool
    has_prev: bool


class UserListResponse(BaseModel):
    users: List[UserResponse]
    pagination: UserPagination


class UserDeletedResponse(BaseModel):
    success: bool = True
    message: str = "User deleted successfully"
