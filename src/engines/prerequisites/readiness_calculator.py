"""
Readiness Calculator - how prepared a student is for a lecture.

Score (integer percent):
    required    = W_req  if no required edges    else W_req * done_req / n_req
    recommended = W_rec  if no recommended edges else W_rec * done_rec / n_rec
    score       = round_half_up(required + recommended)

A prerequisite counts as done only when the student's record for it is
MASTERED. `satisfied` depends on required prerequisites alone; recommended
ones only move the score.

Readiness is derived on every call and never cached.
"""

import uuid
from dataclasses import dataclass, field
from typing import Collection, Iterable, List, Optional, Sequence, Set

from sqlalchemy.ext.asyncio import AsyncSession

from src.engines.prerequisites.repository import PrerequisiteRepository
from src.engines.prerequisites.validation import round_half_up
from src.kernel.models.lecture import LecturePrerequisite
from src.kernel.models.progress import LectureProgress, ProgressStatus
from src.kernel.stores.progress_store import ProgressStore


@dataclass(frozen=True)
class ReadinessWeights:
    """Share of the 100-point score carried by each prerequisite group."""
    required: float = 70.0
    recommended: float = 30.0

    @property
    def total(self) -> float:
        return self.required + self.recommended


DEFAULT_READINESS_WEIGHTS = ReadinessWeights(required=70.0, recommended=30.0)


@dataclass
class ReadinessResult:
    satisfied: bool
    readiness_score: int
    required_prerequisites: List[LecturePrerequisite] = field(default_factory=list)
    completed_prerequisites: List[LecturePrerequisite] = field(default_factory=list)
    missing_required_prerequisites: List[LecturePrerequisite] = field(default_factory=list)
    recommended_prerequisites: List[LecturePrerequisite] = field(default_factory=list)
    completed_recommended_prerequisites: List[LecturePrerequisite] = field(default_factory=list)

    @property
    def missing_required_ids(self) -> List[uuid.UUID]:
        return [e.prerequisite_lecture_id for e in self.missing_required_prerequisites]


def completed_lecture_ids(records: Iterable[LectureProgress]) -> Set[uuid.UUID]:
    """Lecture ids whose record is exactly MASTERED."""
    return {r.lecture_id for r in records if r.status == ProgressStatus.MASTERED}


def evaluate_readiness(
    edges: Sequence[LecturePrerequisite],
    completed_ids: Collection[uuid.UUID],
    weights: ReadinessWeights = DEFAULT_READINESS_WEIGHTS,
) -> ReadinessResult:
    """Pure scoring over one lecture's edges and a snapshot of completed lecture ids."""
    if not edges:
        return ReadinessResult(satisfied=True, readiness_score=round_half_up(weights.total))

    required = [e for e in edges if e.is_required]
    recommended = [e for e in edges if not e.is_required]

    done_required = [e for e in required if e.prerequisite_lecture_id in completed_ids]
    missing_required = [e for e in required if e.prerequisite_lecture_id not in completed_ids]
    done_recommended = [e for e in recommended if e.prerequisite_lecture_id in completed_ids]

    required_score = (
        weights.required * len(done_required) / len(required) if required else weights.required
    )
    recommended_score = (
        weights.recommended * len(done_recommended) / len(recommended)
        if recommended
        else weights.recommended
    )

    return ReadinessResult(
        satisfied=not missing_required,
        readiness_score=round_half_up(required_score + recommended_score),
        required_prerequisites=required,
        completed_prerequisites=done_required,
        missing_required_prerequisites=missing_required,
        recommended_prerequisites=recommended,
        completed_recommended_prerequisites=done_recommended,
    )


class ReadinessCalculator:
    """Computes ReadinessResult for one (lecture, student) pair."""

    def __init__(
        self,
        session: AsyncSession,
        weights: ReadinessWeights = DEFAULT_READINESS_WEIGHTS,
        repository: Optional[PrerequisiteRepository] = None,
        progress: Optional[ProgressStore] = None,
    ):
        self.weights = weights
        self.repository = repository or PrerequisiteRepository(session)
        self.progress = progress or ProgressStore(session)

    def evaluate(
        self,
        edges: Sequence[LecturePrerequisite],
        completed_ids: Collection[uuid.UUID],
    ) -> ReadinessResult:
        return evaluate_readiness(edges, completed_ids, self.weights)

    async def compute_readiness(
        self,
        lecture_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> ReadinessResult:
        edges = await self.repository.find_edges(lecture_id=lecture_id)
        if not edges:
            return self.evaluate([], ())

        # Single progress snapshot for every referenced prerequisite
        records = await self.progress.list_progress(
            user_id,
            lecture_ids=[e.prerequisite_lecture_id for e in edges],
        )
        return self.evaluate(edges, completed_lecture_ids(records))
