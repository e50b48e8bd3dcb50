"""
Lecture and prerequisite-edge models.

Prerequisite edges form a directed graph over lectures
(lecture_id -> prerequisite_lecture_id). The graph must stay acyclic; that is
enforced by the prerequisite service at insertion time. The table constraints
below only guard the local invariants (no self-loop, no duplicate pair,
importance range).
"""

import uuid
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.kernel.models.base import Base, TimestampMixin, generate_uuid

DEFAULT_IMPORTANCE_LEVEL = 3
MIN_IMPORTANCE_LEVEL = 1
MAX_IMPORTANCE_LEVEL = 5


class Lecture(Base, TimestampMixin):
    """A unit of lecture content, ranked by `order` within its category."""

    __tablename__ = "lectures"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    content_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    prerequisites: Mapped[List["LecturePrerequisite"]] = relationship(
        "LecturePrerequisite",
        back_populates="lecture",
        foreign_keys="LecturePrerequisite.lecture_id",
    )
    dependents: Mapped[List["LecturePrerequisite"]] = relationship(
        "LecturePrerequisite",
        back_populates="prerequisite_lecture",
        foreign_keys="LecturePrerequisite.prerequisite_lecture_id",
    )

    __table_args__ = (
        UniqueConstraint("category", "order", name="uq_lectures_category_order"),
    )

    def __repr__(self) -> str:
        return f"<Lecture {self.title!r} {self.category}#{self.order}>"


class LecturePrerequisite(Base, TimestampMixin):
    """Directed edge: `lecture_id` requires (or recommends) `prerequisite_lecture_id`."""

    __tablename__ = "lecture_prerequisites"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    lecture_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("lectures.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    prerequisite_lecture_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("lectures.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    importance_level: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_IMPORTANCE_LEVEL,
    )

    lecture: Mapped["Lecture"] = relationship(
        "Lecture",
        back_populates="prerequisites",
        foreign_keys=[lecture_id],
    )
    prerequisite_lecture: Mapped["Lecture"] = relationship(
        "Lecture",
        back_populates="dependents",
        foreign_keys=[prerequisite_lecture_id],
    )

    __table_args__ = (
        UniqueConstraint(
            "lecture_id",
            "prerequisite_lecture_id",
            name="uq_lecture_prerequisites_pair",
        ),
        CheckConstraint(
            "lecture_id <> prerequisite_lecture_id",
            name="ck_lecture_prerequisites_no_self_loop",
        ),
        CheckConstraint(
            f"importance_level BETWEEN {MIN_IMPORTANCE_LEVEL} AND {MAX_IMPORTANCE_LEVEL}",
            name="ck_lecture_prerequisites_importance_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<LecturePrerequisite {self.lecture_id} -> {self.prerequisite_lecture_id}>"
