"""Lecture progress / workflow schemas."""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict

from src.kernel.models.progress import ProgressStatus
from src.orchestration.state_machine import (
    completion_percentage,
    get_workflow_stage,
    prompt_type_for_status,
)


class ProgressUpdate(BaseModel):
    """Generic status transition request. Values are checked by the workflow."""

    lecture_id: Any = None
    status: Any = None


class ReflectionSubmitted(BaseModel):
    """Notification that a reflection of `prompt_type` was accepted upstream."""

    prompt_type: Any = None


class MasteryScoreSubmit(BaseModel):
    """Evaluation score (0-100) from the reflection evaluation pipeline."""

    score: Any = None


class ProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    lecture_id: uuid.UUID
    status: ProgressStatus
    last_viewed: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_mastery_score: Optional[float] = None
    stage_label: Optional[str] = None
    completion_percentage: Optional[int] = None
    next_prompt_type: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProgressListResponse(BaseModel):
    items: List[ProgressResponse]
    total: int
    completed: int
    in_progress: int


class MasteryResultResponse(BaseModel):
    progress: ProgressResponse
    score: float
    mastered: bool
    mastery_threshold: int


class CompletionStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    exists: bool
    status: ProgressStatus
    is_completed: bool
    is_in_progress: bool
    last_viewed: Optional[datetime] = None
    completed_at: Optional[datetime] = None


def progress_response(record) -> ProgressResponse:
    """ProgressResponse with the derived stage fields filled in."""
    response = ProgressResponse.model_validate(record)
    prompt = prompt_type_for_status(response.status)
    return response.model_copy(
        update={
            "stage_label": get_workflow_stage(response.status).label,
            "completion_percentage": completion_percentage(response.status),
            "next_prompt_type": prompt.value if prompt else None,
        }
    )
