"""Lecture schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LectureCreate(BaseModel):
    """Create a lecture (admin)."""

    title: str = Field(..., min_length=1, max_length=500)
    category: str = Field(..., min_length=1, max_length=255)
    order: int = Field(..., ge=0)
    description: str = ""
    content_url: Optional[str] = None


class LectureSummary(BaseModel):
    """Identity and ordering fields of a lecture."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    category: str
    order: int


class LectureResponse(LectureSummary):
    """Full lecture."""

    description: str = ""
    content_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
