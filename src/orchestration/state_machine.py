"""
State machine for the per-lecture learning workflow.

    LOCKED -> READY -> STARTED -> WATCHED -> INITIAL_REFLECTION
           -> MASTERY_TESTING -> MASTERED
    MASTERY_TESTING -> INITIAL_REFLECTION   (evaluation score below threshold)

MASTERED is terminal. LOCKED -> READY happens lazily: whenever a record is
accessed through the workflow and the lecture's required prerequisites are
mastered, it is promoted. All other moves are driven by explicit student
actions (reflections, watching, mastery evaluation).
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from src.engines.prerequisites.readiness_calculator import (
    DEFAULT_READINESS_WEIGHTS,
    ReadinessCalculator,
    ReadinessWeights,
)
from src.engines.prerequisites.validation import round_half_up
from src.kernel.errors import (
    InvalidStatusError,
    InvalidTransitionError,
    NotFoundError,
    PrerequisitesNotSatisfiedError,
    ValidationError,
)
from src.kernel.events.event_store import EventStore
from src.kernel.identity.identity_service import IdentityService
from src.kernel.models.event_log import EventType
from src.kernel.models.progress import IN_PROGRESS_STATUSES, LectureProgress, ProgressStatus
from src.kernel.stores.lecture_store import LectureStore
from src.kernel.stores.progress_store import ProgressStore
from src.logging_config import get_logger

logger = get_logger(__name__)

MASTERY_THRESHOLD = 70
MIN_MASTERY_SCORE = 0
MAX_MASTERY_SCORE = 100


class PromptType(str, Enum):
    PRE_LECTURE = "pre-lecture"
    INITIAL = "initial"
    MASTERY = "mastery"
    DISCUSSION = "discussion"


# (from, to) -> what triggers the move
_TRANSITIONS: Dict[Tuple[ProgressStatus, ProgressStatus], str] = {
    (ProgressStatus.LOCKED, ProgressStatus.READY): "prerequisites satisfied",
    (ProgressStatus.READY, ProgressStatus.STARTED): "pre-lecture reflection submitted",
    (ProgressStatus.STARTED, ProgressStatus.WATCHED): "content watched",
    (ProgressStatus.WATCHED, ProgressStatus.INITIAL_REFLECTION): "initial reflection submitted",
    (ProgressStatus.INITIAL_REFLECTION, ProgressStatus.MASTERY_TESTING): "mastery reflection submitted",
    (ProgressStatus.MASTERY_TESTING, ProgressStatus.MASTERED): "evaluation passed",
    (ProgressStatus.MASTERY_TESTING, ProgressStatus.INITIAL_REFLECTION): "evaluation failed",
}

_STATUS_TO_PROMPT_TYPE: Dict[ProgressStatus, PromptType] = {
    ProgressStatus.READY: PromptType.PRE_LECTURE,
    ProgressStatus.WATCHED: PromptType.INITIAL,
    ProgressStatus.INITIAL_REFLECTION: PromptType.MASTERY,
    ProgressStatus.MASTERED: PromptType.DISCUSSION,
}

_PROMPT_TYPE_TO_NEXT_STATUS: Dict[PromptType, ProgressStatus] = {
    PromptType.PRE_LECTURE: ProgressStatus.STARTED,
    PromptType.INITIAL: ProgressStatus.INITIAL_REFLECTION,
    PromptType.MASTERY: ProgressStatus.MASTERY_TESTING,
    PromptType.DISCUSSION: ProgressStatus.MASTERED,
}

_MINIMUM_WORD_COUNT: Dict[PromptType, int] = {
    PromptType.PRE_LECTURE: 30,
    PromptType.INITIAL: 30,
    PromptType.MASTERY: 50,
    PromptType.DISCUSSION: 0,
}


@dataclass(frozen=True)
class WorkflowStage:
    key: ProgressStatus
    label: str
    description: str
    order: int
    required_for_completion: bool


WORKFLOW_STAGES: Dict[ProgressStatus, WorkflowStage] = {
    stage.key: stage
    for stage in (
        WorkflowStage(ProgressStatus.LOCKED, "Locked", "Complete prerequisites to unlock this lecture", 0, False),
        WorkflowStage(ProgressStatus.READY, "Pre-Lecture", "Activate prior knowledge before watching", 1, True),
        WorkflowStage(ProgressStatus.STARTED, "View Lecture", "Watch or read the lecture content", 2, True),
        WorkflowStage(ProgressStatus.WATCHED, "Initial Reflection", "Reflect on key ideas from the lecture", 3, True),
        WorkflowStage(ProgressStatus.INITIAL_REFLECTION, "Mastery Reflection", "Demonstrate deeper understanding", 4, True),
        WorkflowStage(ProgressStatus.MASTERY_TESTING, "Evaluation", "Receive feedback on your understanding", 5, True),
        WorkflowStage(ProgressStatus.MASTERED, "Completed", "Lecture mastered", 6, True),
    )
}


def parse_status(value: Any) -> ProgressStatus:
    """Strict parse; anything outside the enumerated set is an error, never coerced."""
    if isinstance(value, ProgressStatus):
        return value
    try:
        return ProgressStatus(value)
    except ValueError:
        raise InvalidStatusError(value) from None


def parse_prompt_type(value: Any) -> PromptType:
    try:
        return PromptType(value)
    except ValueError:
        allowed = ", ".join(p.value for p in PromptType)
        raise ValidationError(
            "Validation failed",
            invalid_fields={"prompt_type": f"Unknown prompt type {value!r}; expected one of {allowed}"},
        ) from None


def valid_transitions(status: Any) -> List[ProgressStatus]:
    """Allowed targets from `status`, in workflow order."""
    current = parse_status(status)
    targets = [to for (frm, to) in _TRANSITIONS if frm == current]
    return sorted(targets, key=lambda s: s.rank)


def can_transition(from_status: Any, to_status: Any) -> bool:
    return (parse_status(from_status), parse_status(to_status)) in _TRANSITIONS


def get_workflow_stage(status: Any) -> WorkflowStage:
    return WORKFLOW_STAGES[parse_status(status)]


def completion_percentage(status: Any) -> int:
    """Share of completion-relevant stages reached, as an integer percent."""
    current = get_workflow_stage(status)
    required = [s for s in WORKFLOW_STAGES.values() if s.required_for_completion]
    reached = [s for s in required if s.order <= current.order]
    return round_half_up(100 * len(reached) / len(required))


def prompt_type_for_status(status: Any) -> Optional[PromptType]:
    """The reflection expected at this stage, if any."""
    return _STATUS_TO_PROMPT_TYPE.get(parse_status(status))


def next_status_for_prompt_type(prompt_type: Any) -> ProgressStatus:
    return _PROMPT_TYPE_TO_NEXT_STATUS[parse_prompt_type(prompt_type)]


def minimum_word_count(prompt_type: Any) -> int:
    return _MINIMUM_WORD_COUNT[parse_prompt_type(prompt_type)]


@dataclass
class MasteryOutcome:
    progress: LectureProgress
    score: float
    mastered: bool
    threshold: int = MASTERY_THRESHOLD


@dataclass
class CompletionStatus:
    exists: bool
    status: ProgressStatus
    is_completed: bool
    is_in_progress: bool
    last_viewed: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class UserProgressSummary:
    records: List[LectureProgress] = field(default_factory=list)
    total: int = 0
    completed: int = 0
    in_progress: int = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowStateMachine:
    """Service for workflow transitions with prerequisite gating and audit logging."""

    def __init__(
        self,
        session: AsyncSession,
        weights: ReadinessWeights = DEFAULT_READINESS_WEIGHTS,
    ):
        self.lectures = LectureStore(session)
        self.progress = ProgressStore(session)
        self.identity = IdentityService(session)
        self.calculator = ReadinessCalculator(session, weights, progress=self.progress)
        self.event_store = EventStore(session)

    async def _require_known(self, user_id: uuid.UUID, lecture_id: uuid.UUID) -> None:
        if not await self.identity.user_exists(user_id):
            raise NotFoundError("User", user_id)
        if not await self.lectures.lecture_exists(lecture_id):
            raise NotFoundError("Lecture", lecture_id)

    async def get_or_create_progress(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> LectureProgress:
        """
        The student's record for a lecture, created on first access.

        New records start READY when prerequisites are satisfied, otherwise
        LOCKED. An existing LOCKED record is promoted to READY as soon as the
        prerequisites are satisfied.
        """
        await self._require_known(user_id, lecture_id)

        record = await self.progress.get_progress(user_id, lecture_id)
        if record is None:
            readiness = await self.calculator.compute_readiness(lecture_id, user_id)
            status = ProgressStatus.READY if readiness.satisfied else ProgressStatus.LOCKED
            record = await self.progress.upsert_progress(user_id, lecture_id, status)
            await self.event_store.log(
                event_type=EventType.PROGRESS_CREATED,
                entity_type="lecture_progress",
                entity_id=record.id,
                user_id=user_id,
                payload={"lecture_id": lecture_id, "status": status.value},
                ip_address=ip_address,
            )
            logger.info(
                "Progress record created",
                extra={"user_id": str(user_id), "lecture_id": str(lecture_id), "status": status.value},
            )
            return record

        if parse_status(record.status) == ProgressStatus.LOCKED:
            readiness = await self.calculator.compute_readiness(lecture_id, user_id)
            if readiness.satisfied:
                record = await self._apply(
                    record,
                    ProgressStatus.READY,
                    user_id,
                    event_type=EventType.LECTURE_UNLOCKED,
                    ip_address=ip_address,
                )
        return record

    async def _apply(
        self,
        record: LectureProgress,
        target: ProgressStatus,
        user_id: uuid.UUID,
        event_type: EventType = EventType.PROGRESS_STATUS_CHANGED,
        ip_address: Optional[str] = None,
        last_viewed: Optional[datetime] = None,
        last_mastery_score: Optional[float] = None,
        extra_payload: Optional[Dict[str, Any]] = None,
    ) -> LectureProgress:
        """Validate against the transition table, persist, audit."""
        current = parse_status(record.status)
        if (current, target) not in _TRANSITIONS:
            raise InvalidTransitionError(
                current.value,
                target.value,
                [s.value for s in valid_transitions(current)],
            )

        updated = await self.progress.upsert_progress(
            record.user_id,
            record.lecture_id,
            target,
            last_viewed=last_viewed,
            completed_at=_utcnow() if target == ProgressStatus.MASTERED else None,
            last_mastery_score=last_mastery_score,
        )

        payload: Dict[str, Any] = {
            "lecture_id": record.lecture_id,
            "from_status": current.value,
            "to_status": target.value,
            "trigger": _TRANSITIONS[(current, target)],
        }
        if extra_payload:
            payload.update(extra_payload)
        await self.event_store.log(
            event_type=event_type,
            entity_type="lecture_progress",
            entity_id=updated.id,
            user_id=user_id,
            payload=payload,
            ip_address=ip_address,
        )
        logger.info(
            "Progress %s -> %s",
            current.value,
            target.value,
            extra={"user_id": str(record.user_id), "lecture_id": str(record.lecture_id)},
        )
        return updated

    async def update_progress_status(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
        status: Any,
        ip_address: Optional[str] = None,
    ) -> LectureProgress:
        """
        Generic transition to `status`. Requesting the status the record is
        already in returns it unchanged.
        """
        target = parse_status(status)
        record = await self.get_or_create_progress(user_id, lecture_id, ip_address=ip_address)
        current = parse_status(record.status)

        if current == target:
            return record

        if current == ProgressStatus.LOCKED and target == ProgressStatus.READY:
            # get_or_create_progress would have promoted it if satisfied
            readiness = await self.calculator.compute_readiness(lecture_id, user_id)
            raise PrerequisitesNotSatisfiedError(lecture_id, readiness.missing_required_ids)

        return await self._apply(record, target, user_id, ip_address=ip_address)

    async def start_lecture(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> LectureProgress:
        """
        Open a lecture: ensures the record exists (promoting LOCKED -> READY
        when possible) and stamps last_viewed. Refused while locked.
        """
        record = await self.get_or_create_progress(user_id, lecture_id, ip_address=ip_address)
        if parse_status(record.status) == ProgressStatus.LOCKED:
            readiness = await self.calculator.compute_readiness(lecture_id, user_id)
            logger.warning(
                "Lecture start refused: prerequisites missing",
                extra={"user_id": str(user_id), "lecture_id": str(lecture_id)},
            )
            raise PrerequisitesNotSatisfiedError(lecture_id, readiness.missing_required_ids)

        return await self.progress.upsert_progress(
            user_id,
            lecture_id,
            parse_status(record.status),
            last_viewed=_utcnow(),
        )

    async def submit_reflection(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
        prompt_type: Any,
        ip_address: Optional[str] = None,
    ) -> LectureProgress:
        """
        Record that the reflection for `prompt_type` was submitted and advance.
        The prompt type must be the one the current stage expects.
        """
        prompt = parse_prompt_type(prompt_type)
        record = await self.get_or_create_progress(user_id, lecture_id, ip_address=ip_address)
        current = parse_status(record.status)

        if prompt == PromptType.DISCUSSION:
            if current != ProgressStatus.MASTERED:
                raise ValidationError(
                    "Validation failed",
                    invalid_fields={"prompt_type": "Discussion reflections require a mastered lecture"},
                )
            return record

        target = _PROMPT_TYPE_TO_NEXT_STATUS[prompt]
        if _STATUS_TO_PROMPT_TYPE.get(current) != prompt:
            raise InvalidTransitionError(
                current.value,
                target.value,
                [s.value for s in valid_transitions(current)],
            )
        return await self._apply(
            record,
            target,
            user_id,
            ip_address=ip_address,
            extra_payload={"prompt_type": prompt.value},
        )

    async def mark_watched(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> LectureProgress:
        """
        STARTED -> WATCHED. Past that stage only last_viewed is refreshed, so
        re-watching never moves the record backwards.
        """
        record = await self.get_or_create_progress(user_id, lecture_id, ip_address=ip_address)
        current = parse_status(record.status)
        now = _utcnow()

        if current.rank > ProgressStatus.STARTED.rank:
            return await self.progress.upsert_progress(user_id, lecture_id, current, last_viewed=now)
        return await self._apply(
            record,
            ProgressStatus.WATCHED,
            user_id,
            ip_address=ip_address,
            last_viewed=now,
        )

    async def submit_mastery_score(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
        score: Any,
        ip_address: Optional[str] = None,
    ) -> MasteryOutcome:
        """Apply an evaluation score; >= 70 masters the lecture, below sends it back to revision."""
        if (
            isinstance(score, bool)
            or not isinstance(score, (int, float))
            or not MIN_MASTERY_SCORE <= score <= MAX_MASTERY_SCORE
        ):
            raise ValidationError(
                "Validation failed",
                invalid_fields={"score": "Score must be a number between 0 and 100"},
            )

        record = await self.get_or_create_progress(user_id, lecture_id, ip_address=ip_address)
        mastered = score >= MASTERY_THRESHOLD
        target = ProgressStatus.MASTERED if mastered else ProgressStatus.INITIAL_REFLECTION

        record = await self._apply(
            record,
            target,
            user_id,
            event_type=EventType.MASTERY_PASSED if mastered else EventType.MASTERY_FAILED,
            ip_address=ip_address,
            last_viewed=_utcnow(),
            last_mastery_score=float(score),
            extra_payload={"score": score, "threshold": MASTERY_THRESHOLD},
        )
        return MasteryOutcome(progress=record, score=float(score), mastered=mastered)

    async def get_completion_status(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
    ) -> CompletionStatus:
        """Read-only view of the stored record; LOCKED when none exists yet."""
        await self._require_known(user_id, lecture_id)
        record = await self.progress.get_progress(user_id, lecture_id)
        if record is None:
            return CompletionStatus(
                exists=False,
                status=ProgressStatus.LOCKED,
                is_completed=False,
                is_in_progress=False,
            )
        status = parse_status(record.status)
        return CompletionStatus(
            exists=True,
            status=status,
            is_completed=status == ProgressStatus.MASTERED,
            is_in_progress=status in IN_PROGRESS_STATUSES,
            last_viewed=record.last_viewed,
            completed_at=record.completed_at,
        )

    async def list_user_progress(self, user_id: uuid.UUID) -> UserProgressSummary:
        if not await self.identity.user_exists(user_id):
            raise NotFoundError("User", user_id)
        records = await self.progress.list_progress(user_id)
        statuses = [parse_status(r.status) for r in records]
        return UserProgressSummary(
            records=records,
            total=len(records),
            completed=sum(1 for s in statuses if s == ProgressStatus.MASTERED),
            in_progress=sum(1 for s in statuses if s in IN_PROGRESS_STATUSES),
        )
