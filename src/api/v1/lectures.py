"""Lecture catalogue and per-lecture prerequisite endpoints."""

import uuid
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request, status

from src.api.deps import AdminUser, CurrentUser, DbSession, get_client_ip, is_admin
from src.engines.prerequisites.prerequisite_service import PrerequisiteService
from src.kernel.errors import ConflictError, NotFoundError
from src.kernel.events.event_store import EventStore
from src.kernel.models.event_log import EventType
from src.kernel.stores.lecture_store import LectureStore
from src.logging_config import get_logger
from src.orchestration.state_machine import WorkflowStateMachine
from src.schemas.common import ErrorResponse
from src.schemas.lecture import LectureCreate, LectureResponse
from src.schemas.prerequisite import (
    PrerequisiteCreate,
    PrerequisiteResponse,
    ReadinessResponse,
    prerequisite_response,
)
from src.schemas.progress import CompletionStatusResponse

router = APIRouter()
logger = get_logger(__name__)


@router.get("", response_model=List[LectureResponse])
async def list_lectures(
    user: CurrentUser,
    db: DbSession,
    category: Optional[str] = None,
):
    """List lectures ordered by category then order."""
    lectures = await LectureStore(db).list_lectures(category)
    return [LectureResponse.model_validate(lecture) for lecture in lectures]


@router.post(
    "",
    response_model=LectureResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_lecture(
    data: LectureCreate,
    request: Request,
    admin: AdminUser,
    db: DbSession,
):
    """Create a lecture (admin). (category, order) must be unique."""
    store = LectureStore(db)
    existing = await store.find_by_position(data.category, data.order)
    if existing:
        raise ConflictError(
            f"Category {data.category!r} already has a lecture at order {data.order}",
            existing_id=existing.id,
        )

    lecture = await store.create_lecture(
        title=data.title,
        category=data.category,
        order=data.order,
        description=data.description,
        content_url=data.content_url,
    )
    await EventStore(db).log(
        event_type=EventType.LECTURE_CREATED,
        entity_type="lecture",
        entity_id=lecture.id,
        user_id=admin.id,
        payload={"title": lecture.title, "category": lecture.category, "order": lecture.order},
        ip_address=get_client_ip(request),
    )
    logger.info("Lecture created", extra={"lecture_id": str(lecture.id)})
    return LectureResponse.model_validate(lecture)


@router.get("/{lecture_id}", response_model=LectureResponse)
async def get_lecture(
    lecture_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
):
    """Get a lecture."""
    lecture = await LectureStore(db).get_lecture(lecture_id)
    if not lecture:
        raise NotFoundError("Lecture", lecture_id)
    return LectureResponse.model_validate(lecture)


@router.get("/{lecture_id}/prerequisites", response_model=List[PrerequisiteResponse])
async def list_prerequisites(
    lecture_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
):
    """Prerequisites of a lecture, required first then by importance."""
    joined = await PrerequisiteService(db).get_prerequisites_for_lecture(lecture_id)
    return [prerequisite_response(j) for j in joined]


@router.get("/{lecture_id}/dependents", response_model=List[PrerequisiteResponse])
async def list_dependents(
    lecture_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
):
    """Edges of lectures that require this one."""
    joined = await PrerequisiteService(db).get_dependent_lectures(lecture_id)
    return [prerequisite_response(j) for j in joined]


@router.post(
    "/{lecture_id}/prerequisites",
    response_model=PrerequisiteResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def add_prerequisite(
    lecture_id: str,
    data: PrerequisiteCreate,
    request: Request,
    admin: AdminUser,
    db: DbSession,
):
    """
    Add a prerequisite edge (admin).

    Both ids are parsed by the service so a malformed path id and body id
    are reported together in one 400.

    Rejected with 400 + cycle_details when the edge would close a loop,
    409 + existing_id when the pair already exists.
    """
    joined = await PrerequisiteService(db).add_prerequisite(
        lecture_id=lecture_id,
        prerequisite_lecture_id=data.prerequisite_lecture_id,
        is_required=data.is_required,
        importance_level=data.importance_level,
        user_id=admin.id,
        ip_address=get_client_ip(request),
    )
    return prerequisite_response(joined)


@router.get("/{lecture_id}/prerequisites/check", response_model=ReadinessResponse)
async def check_prerequisites(
    lecture_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    user_id: Optional[uuid.UUID] = None,
):
    """Readiness of the current user (or, for admins, any user) for a lecture."""
    target = user_id or user.id
    if target != user.id and not is_admin(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot check prerequisites for another user",
        )
    result = await PrerequisiteService(db).check_prerequisites_satisfied(target, lecture_id)
    return ReadinessResponse.model_validate(result)


@router.get("/{lecture_id}/completion-status", response_model=CompletionStatusResponse)
async def completion_status(
    lecture_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
):
    """Stored workflow status of the current user for a lecture."""
    result = await WorkflowStateMachine(db).get_completion_status(user.id, lecture_id)
    return CompletionStatusResponse.model_validate(result)
