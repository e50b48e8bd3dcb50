"""
Prerequisite graph schemas.

Request bodies are deliberately loose (`Any`): field checks happen in the
prerequisite service so one response can list every invalid field.
"""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict

from src.engines.prerequisites.prerequisite_service import AvailabilityStatus
from src.schemas.lecture import LectureSummary


class PrerequisiteCreate(BaseModel):
    """Add `prerequisite_lecture_id` as a prerequisite of the lecture in the path."""

    prerequisite_lecture_id: Any = None
    is_required: Any = None
    importance_level: Any = None


class PrerequisiteUpdate(BaseModel):
    """Patch the mutable edge attributes."""

    is_required: Any = None
    importance_level: Any = None


class PrerequisiteEdgeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    lecture_id: uuid.UUID
    prerequisite_lecture_id: uuid.UUID
    is_required: bool
    importance_level: int
    created_at: datetime
    updated_at: datetime


class PrerequisiteResponse(PrerequisiteEdgeResponse):
    """Edge joined with both lecture summaries."""

    lecture: Optional[LectureSummary] = None
    prerequisite_lecture: Optional[LectureSummary] = None


class ReadinessResponse(BaseModel):
    """Prerequisite satisfaction of one lecture for one student."""

    model_config = ConfigDict(from_attributes=True)

    satisfied: bool
    readiness_score: int
    required_prerequisites: List[PrerequisiteEdgeResponse] = []
    completed_prerequisites: List[PrerequisiteEdgeResponse] = []
    missing_required_prerequisites: List[PrerequisiteEdgeResponse] = []
    recommended_prerequisites: List[PrerequisiteEdgeResponse] = []
    completed_recommended_prerequisites: List[PrerequisiteEdgeResponse] = []


class PrerequisiteCountsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    required: int
    recommended: int
    completed_required: int
    completed_recommended: int


class LectureAvailabilityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lecture: LectureSummary
    status: AvailabilityStatus
    is_completed: bool
    is_in_progress: bool
    is_available: bool
    readiness_score: int
    prerequisites_satisfied: bool
    prerequisites_count: PrerequisiteCountsResponse


class CycleReport(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lecture_ids: List[uuid.UUID]
    path: List[str]
    description: str


class GraphAuditResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_acyclic: bool
    edge_count: int
    cycles: List[CycleReport] = []


def prerequisite_response(joined) -> PrerequisiteResponse:
    """Build from an EdgeWithLectures."""
    edge = PrerequisiteEdgeResponse.model_validate(joined.edge)
    return PrerequisiteResponse(
        **edge.model_dump(),
        lecture=LectureSummary.model_validate(joined.lecture) if joined.lecture else None,
        prerequisite_lecture=(
            LectureSummary.model_validate(joined.prerequisite_lecture)
            if joined.prerequisite_lecture
            else None
        ),
    )
