"""
Prerequisite Service - orchestrates the prerequisite graph.

Edge mutations run validate-then-write inside the caller's transaction:

    validate -> both lectures exist -> graph write lock -> duplicate check
    -> cycle check -> insert -> cycle re-check -> audit event

The unique constraint on the pair plus the post-insert re-check mean two
concurrent writers can never both commit edges that jointly close a loop;
the loser raises and its transaction is rolled back by `get_db`.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.engines.prerequisites.cycle_detector import CycleCheckResult, CycleDetector
from src.engines.prerequisites.readiness_calculator import (
    DEFAULT_READINESS_WEIGHTS,
    ReadinessCalculator,
    ReadinessResult,
    ReadinessWeights,
    completed_lecture_ids,
    evaluate_readiness,
)
from src.engines.prerequisites.repository import PrerequisiteRepository
from src.engines.prerequisites.validation import validate_edge_patch, validate_new_edge
from src.kernel.errors import (
    CircularDependencyError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from src.kernel.events.event_store import EventStore
from src.kernel.identity.identity_service import IdentityService
from src.kernel.models.event_log import EventType
from src.kernel.models.lecture import Lecture, LecturePrerequisite
from src.kernel.models.progress import IN_PROGRESS_STATUSES
from src.kernel.stores.lecture_store import LectureStore
from src.kernel.stores.progress_store import ProgressStore
from src.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_SUGGESTION_LIMIT = 5


class AvailabilityStatus(str, Enum):
    LOCKED = "LOCKED"
    AVAILABLE = "AVAILABLE"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


@dataclass
class EdgeWithLectures:
    """A prerequisite edge joined with both lecture summaries."""
    edge: LecturePrerequisite
    lecture: Optional[Lecture]
    prerequisite_lecture: Optional[Lecture]


@dataclass
class PrerequisiteCounts:
    required: int = 0
    recommended: int = 0
    completed_required: int = 0
    completed_recommended: int = 0


@dataclass
class LectureAvailability:
    lecture: Lecture
    status: AvailabilityStatus
    is_completed: bool
    is_in_progress: bool
    is_available: bool
    readiness_score: int
    prerequisites_satisfied: bool
    prerequisites_count: PrerequisiteCounts = field(default_factory=PrerequisiteCounts)


@dataclass
class GraphAuditReport:
    is_acyclic: bool
    edge_count: int
    cycles: List[CycleCheckResult] = field(default_factory=list)


def suggestion_sort_key(entry: LectureAvailability) -> tuple:
    """In-progress first, then readiness desc, category asc, order asc, id asc."""
    return (
        0 if entry.is_in_progress else 1,
        -entry.readiness_score,
        entry.lecture.category,
        entry.lecture.order,
        str(entry.lecture.id),
    )


def classify_lecture(
    lecture: Lecture,
    edges: Sequence[LecturePrerequisite],
    own_status: Optional[str],
    completed_ids: set,
    weights: ReadinessWeights = DEFAULT_READINESS_WEIGHTS,
) -> LectureAvailability:
    """
    Availability of one lecture for one student.

    Precedence: COMPLETED, then IN_PROGRESS, then AVAILABLE, otherwise LOCKED.
    """
    readiness = evaluate_readiness(edges, completed_ids, weights)
    is_completed = lecture.id in completed_ids
    is_in_progress = own_status in IN_PROGRESS_STATUSES

    if is_completed:
        status = AvailabilityStatus.COMPLETED
    elif is_in_progress:
        status = AvailabilityStatus.IN_PROGRESS
    elif readiness.satisfied:
        status = AvailabilityStatus.AVAILABLE
    else:
        status = AvailabilityStatus.LOCKED

    return LectureAvailability(
        lecture=lecture,
        status=status,
        is_completed=is_completed,
        is_in_progress=is_in_progress,
        is_available=readiness.satisfied and not is_completed,
        readiness_score=readiness.readiness_score,
        prerequisites_satisfied=readiness.satisfied,
        prerequisites_count=PrerequisiteCounts(
            required=len(readiness.required_prerequisites),
            recommended=len(readiness.recommended_prerequisites),
            completed_required=len(readiness.completed_prerequisites),
            completed_recommended=len(readiness.completed_recommended_prerequisites),
        ),
    )


class PrerequisiteService:
    """Admin edge management plus student-facing availability queries."""

    def __init__(
        self,
        session: AsyncSession,
        weights: ReadinessWeights = DEFAULT_READINESS_WEIGHTS,
    ):
        self.weights = weights
        self.repository = PrerequisiteRepository(session)
        self.lectures = LectureStore(session)
        self.progress = ProgressStore(session)
        self.identity = IdentityService(session)
        self.cycle_detector = CycleDetector(session, self.repository, self.lectures)
        self.calculator = ReadinessCalculator(session, weights, self.repository, self.progress)
        self.event_store = EventStore(session)

    # ------------------------------------------------------------------
    # Edge management
    # ------------------------------------------------------------------

    async def add_prerequisite(
        self,
        lecture_id: Any,
        prerequisite_lecture_id: Any,
        is_required: Any = None,
        importance_level: Any = None,
        user_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> EdgeWithLectures:
        new_edge = validate_new_edge(lecture_id, prerequisite_lecture_id, is_required, importance_level)
        lecture_id = new_edge.lecture_id
        prerequisite_lecture_id = new_edge.prerequisite_lecture_id

        found = await self.lectures.get_lectures([lecture_id, prerequisite_lecture_id])
        if lecture_id not in found:
            raise NotFoundError("Lecture", lecture_id)
        if prerequisite_lecture_id not in found:
            raise NotFoundError("Prerequisite lecture", prerequisite_lecture_id)

        await self.repository.lock_graph_for_write()

        existing = await self.repository.get_edge_by_pair(lecture_id, prerequisite_lecture_id)
        if existing is not None:
            logger.warning(
                "Rejected duplicate prerequisite",
                extra={"lecture_id": str(lecture_id), "existing_id": str(existing.id)},
            )
            raise ConflictError(
                "This prerequisite relationship already exists",
                existing_id=existing.id,
            )

        await self._ensure_acyclic(lecture_id, prerequisite_lecture_id)

        try:
            edge = await self.repository.create_edge(
                lecture_id=lecture_id,
                prerequisite_lecture_id=prerequisite_lecture_id,
                is_required=new_edge.is_required,
                importance_level=new_edge.importance_level,
            )
        except IntegrityError as e:
            # A concurrent writer inserted the same pair after our duplicate check
            logger.warning(
                "Prerequisite insert hit a constraint",
                extra={"lecture_id": str(lecture_id)},
            )
            raise ConflictError("This prerequisite relationship already exists") from e

        recheck = await self.cycle_detector.check_cycle(lecture_id, prerequisite_lecture_id)
        if recheck.has_cycle:
            logger.error(
                "Cycle appeared after insert; rejecting prerequisite",
                extra={"lecture_id": str(lecture_id), "cycle": recheck.path},
            )
            await self.repository.delete_edge(edge.id)
            raise CircularDependencyError(recheck.lecture_ids, recheck.path)

        await self.event_store.log(
            event_type=EventType.PREREQUISITE_ADDED,
            entity_type="lecture_prerequisite",
            entity_id=edge.id,
            user_id=user_id,
            payload={
                "lecture_id": lecture_id,
                "prerequisite_lecture_id": prerequisite_lecture_id,
                "is_required": edge.is_required,
                "importance_level": edge.importance_level,
            },
            ip_address=ip_address,
        )
        logger.info(
            "Prerequisite added",
            extra={
                "edge_id": str(edge.id),
                "lecture_id": str(lecture_id),
                "prerequisite_lecture_id": str(prerequisite_lecture_id),
            },
        )
        return EdgeWithLectures(edge, found[lecture_id], found[prerequisite_lecture_id])

    async def _ensure_acyclic(self, lecture_id: uuid.UUID, prerequisite_lecture_id: uuid.UUID) -> None:
        result = await self.cycle_detector.check_cycle(lecture_id, prerequisite_lecture_id)
        if not result.has_cycle:
            return
        logger.warning(
            "Rejected prerequisite that would create a cycle",
            extra={"lecture_id": str(lecture_id), "cycle": result.path},
        )
        if result.pre_existing:
            raise CircularDependencyError(
                result.lecture_ids,
                result.path,
                message="The prerequisite graph already contains a circular dependency",
            )
        raise CircularDependencyError(result.lecture_ids, result.path)

    async def update_prerequisite(
        self,
        edge_id: uuid.UUID,
        is_required: Any = None,
        importance_level: Any = None,
        user_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> EdgeWithLectures:
        """Patch the mutable attributes. Topology is unchanged, so no cycle check."""
        patch = validate_edge_patch(is_required, importance_level)

        edge = await self.repository.get_edge(edge_id)
        if edge is None:
            raise NotFoundError("Prerequisite", edge_id)

        if not patch.is_empty:
            previous = {"is_required": edge.is_required, "importance_level": edge.importance_level}
            edge = await self.repository.update_edge(
                edge,
                is_required=patch.is_required,
                importance_level=patch.importance_level,
            )
            await self.event_store.log(
                event_type=EventType.PREREQUISITE_UPDATED,
                entity_type="lecture_prerequisite",
                entity_id=edge.id,
                user_id=user_id,
                payload={
                    "previous": previous,
                    "is_required": edge.is_required,
                    "importance_level": edge.importance_level,
                },
                ip_address=ip_address,
            )
            logger.info("Prerequisite updated", extra={"edge_id": str(edge.id)})

        return await self._join(edge)

    async def remove_prerequisite(
        self,
        edge_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        """Delete unconditionally; removing an edge can only relax availability."""
        edge = await self.repository.get_edge(edge_id)
        if edge is None:
            raise NotFoundError("Prerequisite", edge_id)

        payload = {
            "lecture_id": edge.lecture_id,
            "prerequisite_lecture_id": edge.prerequisite_lecture_id,
        }
        await self.repository.delete_edge(edge_id)
        await self.event_store.log(
            event_type=EventType.PREREQUISITE_REMOVED,
            entity_type="lecture_prerequisite",
            entity_id=edge_id,
            user_id=user_id,
            payload=payload,
            ip_address=ip_address,
        )
        logger.info("Prerequisite removed", extra={"edge_id": str(edge_id)})

    async def get_prerequisite(self, edge_id: uuid.UUID) -> EdgeWithLectures:
        edge = await self.repository.get_edge(edge_id)
        if edge is None:
            raise NotFoundError("Prerequisite", edge_id)
        return await self._join(edge)

    async def get_prerequisites_for_lecture(self, lecture_id: uuid.UUID) -> List[EdgeWithLectures]:
        """Edges out of `lecture_id`: required first, then by importance."""
        if not await self.lectures.lecture_exists(lecture_id):
            raise NotFoundError("Lecture", lecture_id)
        edges = await self.repository.find_edges(lecture_id=lecture_id)
        return await self._join_many(edges)

    async def get_dependent_lectures(self, lecture_id: uuid.UUID) -> List[EdgeWithLectures]:
        """Edges that name `lecture_id` as their prerequisite."""
        if not await self.lectures.lecture_exists(lecture_id):
            raise NotFoundError("Lecture", lecture_id)
        edges = await self.repository.find_edges(prerequisite_lecture_id=lecture_id)
        return await self._join_many(edges)

    async def audit_graph(self) -> GraphAuditReport:
        edges = await self.repository.list_all_edges()
        cycles = await self.cycle_detector.find_cycles()
        return GraphAuditReport(is_acyclic=not cycles, edge_count=len(edges), cycles=cycles)

    async def _join(self, edge: LecturePrerequisite) -> EdgeWithLectures:
        return (await self._join_many([edge]))[0]

    async def _join_many(self, edges: Sequence[LecturePrerequisite]) -> List[EdgeWithLectures]:
        ids = {e.lecture_id for e in edges} | {e.prerequisite_lecture_id for e in edges}
        lectures = await self.lectures.get_lectures(ids)
        return [
            EdgeWithLectures(e, lectures.get(e.lecture_id), lectures.get(e.prerequisite_lecture_id))
            for e in edges
        ]

    # ------------------------------------------------------------------
    # Student queries
    # ------------------------------------------------------------------

    async def check_prerequisites_satisfied(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
    ) -> ReadinessResult:
        if not await self.identity.user_exists(user_id):
            raise NotFoundError("User", user_id)
        if not await self.lectures.lecture_exists(lecture_id):
            raise NotFoundError("Lecture", lecture_id)
        return await self.calculator.compute_readiness(lecture_id, user_id)

    async def get_available_lectures_for_student(
        self,
        user_id: uuid.UUID,
        category: Optional[str] = None,
        include_in_progress: bool = True,
    ) -> List[LectureAvailability]:
        """
        Classify every lecture (optionally one category) for the student.
        One lecture query, one edge query, one progress snapshot.
        """
        if not await self.identity.user_exists(user_id):
            raise NotFoundError("User", user_id)

        lectures = await self.lectures.list_lectures(category)
        edges_by_lecture = await self.repository.find_edges_for_lectures(l.id for l in lectures)
        records = await self.progress.list_progress(user_id)

        completed = completed_lecture_ids(records)
        status_by_lecture: Dict[uuid.UUID, str] = {r.lecture_id: r.status for r in records}

        results = [
            classify_lecture(
                lecture,
                edges_by_lecture.get(lecture.id, []),
                status_by_lecture.get(lecture.id),
                completed,
                self.weights,
            )
            for lecture in lectures
        ]
        if not include_in_progress:
            results = [r for r in results if not r.is_in_progress]
        return results

    async def suggest_next_lectures(
        self,
        user_id: uuid.UUID,
        limit: int = DEFAULT_SUGGESTION_LIMIT,
        category: Optional[str] = None,
    ) -> List[LectureAvailability]:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError(
                "Validation failed",
                invalid_fields={"limit": "limit must be a positive integer"},
            )

        entries = await self.get_available_lectures_for_student(
            user_id,
            category=category,
            include_in_progress=True,
        )
        candidates = [
            e for e in entries
            if e.status in (AvailabilityStatus.AVAILABLE, AvailabilityStatus.IN_PROGRESS)
        ]
        candidates.sort(key=suggestion_sort_key)
        return candidates[:limit]
