"""Prerequisite edge endpoints (by edge id) and graph audit."""

import uuid

from fastapi import APIRouter, Request

from src.api.deps import AdminUser, CurrentUser, DbSession, get_client_ip
from src.engines.prerequisites.prerequisite_service import PrerequisiteService
from src.schemas.common import ErrorResponse, SuccessResponse
from src.schemas.prerequisite import (
    CycleReport,
    GraphAuditResponse,
    PrerequisiteResponse,
    PrerequisiteUpdate,
    prerequisite_response,
)

router = APIRouter()


@router.get("/audit", response_model=GraphAuditResponse)
async def audit_graph(
    admin: AdminUser,
    db: DbSession,
):
    """Whole-graph acyclicity check (admin)."""
    report = await PrerequisiteService(db).audit_graph()
    return GraphAuditResponse(
        is_acyclic=report.is_acyclic,
        edge_count=report.edge_count,
        cycles=[
            CycleReport(lecture_ids=c.lecture_ids, path=c.path, description=c.description)
            for c in report.cycles
        ],
    )


@router.get("/{edge_id}", response_model=PrerequisiteResponse)
async def get_prerequisite(
    edge_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
):
    """Get one prerequisite edge."""
    return prerequisite_response(await PrerequisiteService(db).get_prerequisite(edge_id))


@router.patch(
    "/{edge_id}",
    response_model=PrerequisiteResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_prerequisite(
    edge_id: uuid.UUID,
    data: PrerequisiteUpdate,
    request: Request,
    admin: AdminUser,
    db: DbSession,
):
    """Update is_required / importance_level (admin)."""
    joined = await PrerequisiteService(db).update_prerequisite(
        edge_id,
        is_required=data.is_required,
        importance_level=data.importance_level,
        user_id=admin.id,
        ip_address=get_client_ip(request),
    )
    return prerequisite_response(joined)


@router.delete(
    "/{edge_id}",
    response_model=SuccessResponse,
    responses={404: {"model": ErrorResponse}},
)
async def remove_prerequisite(
    edge_id: uuid.UUID,
    request: Request,
    admin: AdminUser,
    db: DbSession,
):
    """Remove a prerequisite edge (admin)."""
    await PrerequisiteService(db).remove_prerequisite(
        edge_id,
        user_id=admin.id,
        ip_address=get_client_ip(request),
    )
    return SuccessResponse(message="Prerequisite removed successfully")
