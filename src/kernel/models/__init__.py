"""
Kernel Data Models

SQLAlchemy models for lectures, the prerequisite graph, student progress
and the audit log.
"""

from src.kernel.models.base import Base, TimestampMixin, generate_uuid
from src.kernel.models.user import User, UserRole
from src.kernel.models.lecture import (
    Lecture,
    LecturePrerequisite,
    DEFAULT_IMPORTANCE_LEVEL,
    MIN_IMPORTANCE_LEVEL,
    MAX_IMPORTANCE_LEVEL,
)
from src.kernel.models.progress import LectureProgress, ProgressStatus, IN_PROGRESS_STATUSES
from src.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    # User
    "User",
    "UserRole",
    # Lectures
    "Lecture",
    "LecturePrerequisite",
    "DEFAULT_IMPORTANCE_LEVEL",
    "MIN_IMPORTANCE_LEVEL",
    "MAX_IMPORTANCE_LEVEL",
    # Progress
    "LectureProgress",
    "ProgressStatus",
    "IN_PROGRESS_STATUSES",
    # Event Log
    "EventLog",
    "EventType",
]
