"""Student-facing endpoints: availability, suggestions and workflow actions."""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Request

from src.api.deps import CurrentUser, DbSession, get_client_ip
from src.config import get_settings
from src.engines.prerequisites.prerequisite_service import PrerequisiteService
from src.orchestration.state_machine import WorkflowStateMachine
from src.schemas.common import ErrorResponse
from src.schemas.prerequisite import LectureAvailabilityResponse
from src.schemas.progress import (
    MasteryResultResponse,
    MasteryScoreSubmit,
    ProgressResponse,
    ReflectionSubmitted,
    progress_response,
)

router = APIRouter()


@router.get("/available-lectures", response_model=List[LectureAvailabilityResponse])
async def available_lectures(
    user: CurrentUser,
    db: DbSession,
    category: Optional[str] = None,
    include_in_progress: bool = True,
):
    """Every lecture classified as LOCKED / AVAILABLE / IN_PROGRESS / COMPLETED."""
    entries = await PrerequisiteService(db).get_available_lectures_for_student(
        user.id,
        category=category,
        include_in_progress=include_in_progress,
    )
    return [LectureAvailabilityResponse.model_validate(e) for e in entries]


@router.get(
    "/suggested-lectures",
    response_model=List[LectureAvailabilityResponse],
    responses={400: {"model": ErrorResponse}},
)
async def suggested_lectures(
    user: CurrentUser,
    db: DbSession,
    limit: Optional[int] = None,
    category: Optional[str] = None,
):
    """Ranked next lectures: in progress first, then by readiness."""
    settings = get_settings()
    if limit is None:
        limit = settings.suggestion_default_limit
    elif limit > settings.suggestion_max_limit:
        limit = settings.suggestion_max_limit

    entries = await PrerequisiteService(db).suggest_next_lectures(
        user.id,
        limit=limit,
        category=category,
    )
    return [LectureAvailabilityResponse.model_validate(e) for e in entries]


@router.post(
    "/lectures/{lecture_id}/start",
    response_model=ProgressResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def start_lecture(
    lecture_id: uuid.UUID,
    request: Request,
    user: CurrentUser,
    db: DbSession,
):
    """Open a lecture. Refused while required prerequisites are missing."""
    record = await WorkflowStateMachine(db).start_lecture(
        user.id,
        lecture_id,
        ip_address=get_client_ip(request),
    )
    return progress_response(record)


@router.post(
    "/lectures/{lecture_id}/viewed",
    response_model=ProgressResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def mark_viewed(
    lecture_id: uuid.UUID,
    request: Request,
    user: CurrentUser,
    db: DbSession,
):
    """Mark the lecture content as watched."""
    record = await WorkflowStateMachine(db).mark_watched(
        user.id,
        lecture_id,
        ip_address=get_client_ip(request),
    )
    return progress_response(record)


@router.post(
    "/lectures/{lecture_id}/reflections",
    response_model=ProgressResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def reflection_submitted(
    lecture_id: uuid.UUID,
    data: ReflectionSubmitted,
    request: Request,
    user: CurrentUser,
    db: DbSession,
):
    """Advance the workflow after a reflection of `prompt_type` was accepted."""
    record = await WorkflowStateMachine(db).submit_reflection(
        user.id,
        lecture_id,
        data.prompt_type,
        ip_address=get_client_ip(request),
    )
    return progress_response(record)


@router.post(
    "/lectures/{lecture_id}/mastery",
    response_model=MasteryResultResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def submit_mastery(
    lecture_id: uuid.UUID,
    data: MasteryScoreSubmit,
    request: Request,
    user: CurrentUser,
    db: DbSession,
):
    """Apply an evaluation score; 70 or more masters the lecture."""
    outcome = await WorkflowStateMachine(db).submit_mastery_score(
        user.id,
        lecture_id,
        data.score,
        ip_address=get_client_ip(request),
    )
    return MasteryResultResponse(
        progress=progress_response(outcome.progress),
        score=outcome.score,
        mastered=outcome.mastered,
        mastery_threshold=outcome.threshold,
    )
