"""
Lecture progress model - one record per (student, lecture).
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Float, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.kernel.models.base import Base, TimestampMixin, generate_uuid

if TYPE_CHECKING:
    from src.kernel.models.user import User
    from src.kernel.models.lecture import Lecture


class ProgressStatus(str, Enum):
    """Workflow stages of a lecture, in workflow order."""
    LOCKED = "LOCKED"
    READY = "READY"
    STARTED = "STARTED"
    WATCHED = "WATCHED"
    INITIAL_REFLECTION = "INITIAL_REFLECTION"
    MASTERY_TESTING = "MASTERY_TESTING"
    MASTERED = "MASTERED"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = list(ProgressStatus)

# Statuses that count as "working on the lecture": opened, not locked, not done
IN_PROGRESS_STATUSES = frozenset({
    ProgressStatus.READY,
    ProgressStatus.STARTED,
    ProgressStatus.WATCHED,
    ProgressStatus.INITIAL_REFLECTION,
    ProgressStatus.MASTERY_TESTING,
})


class LectureProgress(Base, TimestampMixin):
    """
    A student's position in the per-lecture workflow.
    Created lazily on first interaction; `completed_at` is stamped only when
    the record enters MASTERED.
    """

    __tablename__ = "lecture_progress"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    lecture_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("lectures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[ProgressStatus] = mapped_column(
        String(50),
        nullable=False,
        default=ProgressStatus.LOCKED,
    )
    last_viewed: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    last_mastery_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="progress_records")
    lecture: Mapped["Lecture"] = relationship("Lecture")

    __table_args__ = (
        UniqueConstraint("user_id", "lecture_id", name="uq_lecture_progress_user_lecture"),
        Index("ix_lecture_progress_user_status", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<LectureProgress {self.user_id}:{self.lecture_id} {self.status}>"
