"""Progress endpoints for the current user."""

from typing import Dict

from fastapi import APIRouter, Request

from src.api.deps import CurrentUser, DbSession, get_client_ip
from src.engines.prerequisites.validation import parse_id
from src.kernel.errors import InvalidStatusError, ValidationError
from src.orchestration.state_machine import WorkflowStateMachine, parse_status
from src.schemas.common import ErrorResponse
from src.schemas.progress import (
    ProgressListResponse,
    ProgressResponse,
    ProgressUpdate,
    progress_response,
)

router = APIRouter()


@router.get("", response_model=ProgressListResponse)
async def list_progress(
    user: CurrentUser,
    db: DbSession,
):
    """All progress records of the current user with totals."""
    summary = await WorkflowStateMachine(db).list_user_progress(user.id)
    return ProgressListResponse(
        items=[progress_response(r) for r in summary.records],
        total=summary.total,
        completed=summary.completed,
        in_progress=summary.in_progress,
    )


@router.patch(
    "",
    response_model=ProgressResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_progress(
    data: ProgressUpdate,
    request: Request,
    user: CurrentUser,
    db: DbSession,
):
    """Move one lecture to the next workflow status."""
    errors: Dict[str, str] = {}
    lecture_id = parse_id(data.lecture_id)
    if lecture_id is None:
        errors["lecture_id"] = "Lecture ID must be a valid UUID"
    if data.status is None:
        errors["status"] = "Status is required"
    else:
        try:
            parse_status(data.status)
        except InvalidStatusError as e:
            errors.update(e.invalid_fields)
    if errors:
        raise ValidationError("Validation failed", invalid_fields=errors)

    record = await WorkflowStateMachine(db).update_progress_status(
        user.id,
        lecture_id,
        data.status,
        ip_address=get_client_ip(request),
    )
    return progress_response(record)
