"""
Immutable event log for audit trail.

All state mutations are logged here BEFORE commit.
This implements the append-only audit requirement.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, String, Text, func, Index, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.kernel.models.base import Base, generate_uuid


class EventType(str, Enum):
    """All event types for the audit log."""

    # Lecture catalogue
    LECTURE_CREATED = "lecture.created"

    # Prerequisite graph
    PREREQUISITE_ADDED = "prerequisite.added"
    PREREQUISITE_UPDATED = "prerequisite.updated"
    PREREQUISITE_REMOVED = "prerequisite.removed"

    # Student workflow
    PROGRESS_CREATED = "progress.created"
    PROGRESS_STATUS_CHANGED = "progress.status_changed"
    LECTURE_UNLOCKED = "progress.lecture_unlocked"
    MASTERY_PASSED = "progress.mastery_passed"
    MASTERY_FAILED = "progress.mastery_failed"


class EventLog(Base):
    """
    Immutable audit event log.

    This table is append-only - no updates or deletes allowed.
    """

    __tablename__ = "event_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )

    event_type: Mapped[EventType] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        nullable=False,
        index=True,
    )

    # Actor; system events (lazy unlocks) may not have one
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
        index=True,
    )

    payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    ip_address: Mapped[Optional[str]] = mapped_column(
        String(45),  # IPv6 max length
        nullable=True,
    )
    user_agent: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_event_logs_entity", "entity_type", "entity_id"),
        Index("ix_event_logs_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        event_type = getattr(self.event_type, "value", self.event_type)
        return f"<EventLog {event_type} {self.entity_type}:{self.entity_id}>"
