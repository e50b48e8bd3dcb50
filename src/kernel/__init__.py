"""
Stable Kernel Layer

Foundational components the engines build on:
- Data models (lectures, prerequisite edges, progress, audit log)
- Store adapters (key-based access to lectures and progress)
- Immutable Event Log (all mutations logged)
- Identity lookups (token verification, user existence)
- Typed domain errors

Architectural invariants:
- All state changes logged before commit; logs immutable
- Engines never swallow storage failures; they surface as DatabaseError
"""

from src.kernel.models import (
    User,
    UserRole,
    Lecture,
    LecturePrerequisite,
    LectureProgress,
    ProgressStatus,
    EventLog,
    EventType,
)

__all__ = [
    "User",
    "UserRole",
    "Lecture",
    "LecturePrerequisite",
    "LectureProgress",
    "ProgressStatus",
    "EventLog",
    "EventType",
]
