"""
Pydantic schemas for API request/response validation.
"""

from src.schemas.common import (
    CycleDetails,
    ErrorResponse,
    HealthResponse,
    SuccessResponse,
)
from src.schemas.lecture import (
    LectureCreate,
    LectureResponse,
    LectureSummary,
)
from src.schemas.prerequisite import (
    GraphAuditResponse,
    LectureAvailabilityResponse,
    PrerequisiteCreate,
    PrerequisiteResponse,
    PrerequisiteUpdate,
    ReadinessResponse,
)
from src.schemas.progress import (
    CompletionStatusResponse,
    MasteryResultResponse,
    MasteryScoreSubmit,
    ProgressListResponse,
    ProgressResponse,
    ProgressUpdate,
    ReflectionSubmitted,
)

__all__ = [
    # Common
    "CycleDetails",
    "ErrorResponse",
    "HealthResponse",
    "SuccessResponse",
    # Lectures
    "LectureCreate",
    "LectureResponse",
    "LectureSummary",
    # Prerequisites
    "GraphAuditResponse",
    "LectureAvailabilityResponse",
    "PrerequisiteCreate",
    "PrerequisiteResponse",
    "PrerequisiteUpdate",
    "ReadinessResponse",
    # Progress
    "CompletionStatusResponse",
    "MasteryResultResponse",
    "MasteryScoreSubmit",
    "ProgressListResponse",
    "ProgressResponse",
    "ProgressUpdate",
    "ReflectionSubmitted",
]
