"""
Prerequisite Engine - dependency graph between lectures.

- Cycle Detector: rejects edges that would close a loop
- Readiness Calculator: weighted score (70 required / 30 recommended)
- Prerequisite Service: edge management, availability and suggestions
"""

from src.engines.prerequisites.cycle_detector import CycleCheckResult, CycleDetector
from src.engines.prerequisites.readiness_calculator import (
    DEFAULT_READINESS_WEIGHTS,
    ReadinessCalculator,
    ReadinessResult,
    ReadinessWeights,
)
from src.engines.prerequisites.repository import PrerequisiteRepository
from src.engines.prerequisites.prerequisite_service import (
    AvailabilityStatus,
    EdgeWithLectures,
    GraphAuditReport,
    LectureAvailability,
    PrerequisiteService,
)

__all__ = [
    "CycleCheckResult",
    "CycleDetector",
    "DEFAULT_READINESS_WEIGHTS",
    "ReadinessCalculator",
    "ReadinessResult",
    "ReadinessWeights",
    "PrerequisiteRepository",
    "AvailabilityStatus",
    "EdgeWithLectures",
    "GraphAuditReport",
    "LectureAvailability",
    "PrerequisiteService",
]
