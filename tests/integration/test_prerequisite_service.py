"""Integration tests for the prerequisite service against a SQLite database."""

import asyncio
import random
import uuid

import pytest

from src.database import async_session_maker
from src.engines.prerequisites.cycle_detector import find_cycles_in
from src.engines.prerequisites.prerequisite_service import (
    AvailabilityStatus,
    PrerequisiteService,
)
from src.kernel.errors import (
    CircularDependencyError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from src.kernel.events.event_store import EventStore
from src.kernel.models import EventType, ProgressStatus
from src.orchestration.state_machine import WorkflowStateMachine


@pytest.fixture
def service(db_session) -> PrerequisiteService:
    return PrerequisiteService(db_session)


@pytest.mark.asyncio
async def test_add_prerequisite_returns_joined_edge(service, db_session, make_lecture, test_admin):
    a = await make_lecture("A")
    b = await make_lecture("B")

    joined = await service.add_prerequisite(b.id, str(a.id), user_id=test_admin.id)

    assert joined.edge.lecture_id == b.id
    assert joined.edge.prerequisite_lecture_id == a.id
    assert joined.edge.is_required is True
    assert joined.edge.importance_level == 3
    assert joined.lecture.title == "B"
    assert joined.prerequisite_lecture.title == "A"

    await db_session.flush()
    events = await EventStore(db_session).count_events(
        entity_id=joined.edge.id,
        event_type=EventType.PREREQUISITE_ADDED,
    )
    assert events == 1


@pytest.mark.asyncio
async def test_end_to_end_scenario(service, db_session, make_lecture, test_user, set_progress):
    a = await make_lecture("A", order=1)
    b = await make_lecture("B", order=2)
    c = await make_lecture("C", order=3)
    d = await make_lecture("D", order=4)

    await service.add_prerequisite(b.id, a.id, True)
    await service.add_prerequisite(c.id, b.id, True)
    await service.add_prerequisite(d.id, a.id, True, 2)
    await set_progress(test_user, a, ProgressStatus.MASTERED)

    entries = {
        e.lecture.id: e
        for e in await service.get_available_lectures_for_student(test_user.id)
    }
    assert entries[a.id].status == AvailabilityStatus.COMPLETED
    assert entries[b.id].status == AvailabilityStatus.AVAILABLE
    assert entries[b.id].readiness_score == 100
    assert entries[c.id].status == AvailabilityStatus.LOCKED
    # 0 of 1 required, no recommended: 0 + 30
    assert entries[c.id].readiness_score == 30
    assert entries[c.id].prerequisites_satisfied is False
    assert entries[d.id].status == AvailabilityStatus.AVAILABLE
    assert entries[d.id].readiness_score == 100

    with pytest.raises(CircularDependencyError) as exc_info:
        await service.add_prerequisite(a.id, c.id, True)

    error = exc_info.value
    assert error.lecture_ids == [a.id, c.id, b.id, a.id]
    assert error.path == [
        f"A ({a.id})",
        f"C ({c.id})",
        f"B ({b.id})",
        f"A ({a.id})",
    ]
    payload = error.to_payload()
    assert payload["cycle_details"]["description"].startswith("Circular dependency detected: ")
    assert " → " in payload["cycle_details"]["description"]
    assert await service.repository.get_edge_by_pair(a.id, c.id) is None


@pytest.mark.asyncio
async def test_two_node_cycle_rejected(service, make_lecture):
    a = await make_lecture("A")
    b = await make_lecture("B")
    await service.add_prerequisite(b.id, a.id)

    with pytest.raises(CircularDependencyError):
        await service.add_prerequisite(a.id, b.id)


@pytest.mark.asyncio
async def test_duplicate_reports_existing_id(service, make_lecture):
    a = await make_lecture("A")
    b = await make_lecture("B")
    first = await service.add_prerequisite(b.id, a.id)

    with pytest.raises(ConflictError) as exc_info:
        await service.add_prerequisite(b.id, a.id, False, 5)

    assert exc_info.value.existing_id == first.edge.id
    assert exc_info.value.to_payload()["existing_id"] == str(first.edge.id)


@pytest.mark.asyncio
async def test_self_loop_is_a_validation_error(service, make_lecture):
    a = await make_lecture("A")
    with pytest.raises(ValidationError) as exc_info:
        await service.add_prerequisite(a.id, a.id)
    assert "prerequisite_lecture_id" in exc_info.value.invalid_fields


@pytest.mark.asyncio
async def test_unknown_lectures(service, make_lecture):
    a = await make_lecture("A")

    with pytest.raises(NotFoundError) as exc_info:
        await service.add_prerequisite(uuid.uuid4(), a.id)
    assert exc_info.value.entity == "Lecture"

    with pytest.raises(NotFoundError) as exc_info:
        await service.add_prerequisite(a.id, uuid.uuid4())
    assert exc_info.value.entity == "Prerequisite lecture"


@pytest.mark.asyncio
async def test_random_insertions_keep_graph_acyclic(service, make_lecture):
    lectures = [await make_lecture(f"L{i}") for i in range(8)]
    rng = random.Random(1234)
    adjacency = {}
    added = rejected_cycles = 0

    for _ in range(40):
        lecture, prerequisite = rng.sample(lectures, 2)
        current = adjacency.get(lecture.id, [])
        candidate = {**adjacency, lecture.id: current + [prerequisite.id]}
        is_duplicate = prerequisite.id in current
        closes_loop = bool(find_cycles_in(candidate))

        if is_duplicate:
            with pytest.raises(ConflictError):
                await service.add_prerequisite(lecture.id, prerequisite.id)
        elif closes_loop:
            with pytest.raises(CircularDependencyError):
                await service.add_prerequisite(lecture.id, prerequisite.id)
            rejected_cycles += 1
        else:
            await service.add_prerequisite(lecture.id, prerequisite.id, rng.random() < 0.7)
            adjacency[lecture.id] = current + [prerequisite.id]
            added += 1

    report = await service.audit_graph()
    assert added > 0
    assert rejected_cycles > 0
    assert report.is_acyclic is True
    assert report.edge_count == added
    assert report.cycles == []


@pytest.mark.asyncio
async def test_audit_reports_stored_cycle(service, make_lecture, make_edge):
    a = await make_lecture("A")
    b = await make_lecture("B")
    c = await make_lecture("C")
    await make_edge(a, b)
    await make_edge(b, a)

    report = await service.audit_graph()
    assert report.is_acyclic is False
    assert len(report.cycles) == 1

    # New edges touching the loop are refused, not silently accepted
    with pytest.raises(CircularDependencyError) as exc_info:
        await service.add_prerequisite(c.id, a.id)
    assert "already contains" in exc_info.value.message


@pytest.mark.asyncio
async def test_prerequisites_and_dependents_ordering(service, make_lecture):
    target = await make_lecture("Target")
    low = await make_lecture("Low")
    high = await make_lecture("High")
    recommended = await make_lecture("Recommended")

    await service.add_prerequisite(target.id, recommended.id, False, 5)
    await service.add_prerequisite(target.id, low.id, True, 1)
    await service.add_prerequisite(target.id, high.id, True, 4)

    prerequisites = await service.get_prerequisites_for_lecture(target.id)
    assert [j.prerequisite_lecture.title for j in prerequisites] == ["High", "Low", "Recommended"]

    dependents = await service.get_dependent_lectures(low.id)
    assert [j.lecture.title for j in dependents] == ["Target"]

    with pytest.raises(NotFoundError):
        await service.get_prerequisites_for_lecture(uuid.uuid4())


@pytest.mark.asyncio
async def test_update_and_remove(service, db_session, make_lecture, test_admin):
    a = await make_lecture("A")
    b = await make_lecture("B")
    joined = await service.add_prerequisite(b.id, a.id)

    updated = await service.update_prerequisite(joined.edge.id, is_required=False, importance_level=4.6)
    assert updated.edge.is_required is False
    assert updated.edge.importance_level == 5

    with pytest.raises(ValidationError):
        await service.update_prerequisite(joined.edge.id, importance_level=9)

    await service.remove_prerequisite(joined.edge.id, user_id=test_admin.id)
    assert await service.repository.get_edge(joined.edge.id) is None

    with pytest.raises(NotFoundError):
        await service.remove_prerequisite(joined.edge.id)

    await db_session.flush()
    removed = await EventStore(db_session).count_events(event_type=EventType.PREREQUISITE_REMOVED)
    assert removed == 1


@pytest.mark.asyncio
async def test_check_prerequisites_satisfied(service, make_lecture, test_user, set_progress):
    a = await make_lecture("A")
    b = await make_lecture("B")
    rec = await make_lecture("Rec")
    await service.add_prerequisite(b.id, a.id, True)
    await service.add_prerequisite(b.id, rec.id, False)

    before = await service.check_prerequisites_satisfied(test_user.id, b.id)
    assert before.satisfied is False
    assert before.readiness_score == 0
    assert before.missing_required_ids == [a.id]

    # Anything short of MASTERED does not count
    await set_progress(test_user, a, ProgressStatus.MASTERY_TESTING)
    still = await service.check_prerequisites_satisfied(test_user.id, b.id)
    assert still.satisfied is False

    with pytest.raises(NotFoundError):
        await service.check_prerequisites_satisfied(uuid.uuid4(), b.id)
    with pytest.raises(NotFoundError):
        await service.check_prerequisites_satisfied(test_user.id, uuid.uuid4())


@pytest.mark.asyncio
async def test_suggestions(service, make_lecture, test_user, set_progress):
    a = await make_lecture("A", category="math", order=1)
    b = await make_lecture("B", category="math", order=2)
    c = await make_lecture("C", category="art", order=1)
    locked = await make_lecture("Locked", category="math", order=3)
    await service.add_prerequisite(locked.id, b.id, True)
    await set_progress(test_user, b, ProgressStatus.WATCHED)

    suggestions = await service.suggest_next_lectures(test_user.id, limit=10)
    titles = [s.lecture.title for s in suggestions]
    assert titles == ["B", "C", "A"]
    assert suggestions[0].status == AvailabilityStatus.IN_PROGRESS

    assert len(await service.suggest_next_lectures(test_user.id, limit=1)) == 1
    math_only = await service.suggest_next_lectures(test_user.id, category="math")
    assert {s.lecture.title for s in math_only} == {"A", "B"}

    with pytest.raises(ValidationError):
        await service.suggest_next_lectures(test_user.id, limit=0)


@pytest.mark.asyncio
async def test_opened_lecture_is_suggested_first(service, db_session, make_lecture, test_user):
    other = await make_lecture("Other", category="art", order=1)
    opened = await make_lecture("Opened", category="math", order=1)
    await WorkflowStateMachine(db_session).start_lecture(test_user.id, opened.id)

    entries = {
        e.lecture.id: e
        for e in await service.get_available_lectures_for_student(test_user.id)
    }
    assert entries[opened.id].status == AvailabilityStatus.IN_PROGRESS
    assert entries[other.id].status == AvailabilityStatus.AVAILABLE

    suggestions = await service.suggest_next_lectures(test_user.id)
    assert [s.lecture.title for s in suggestions] == ["Opened", "Other"]

    not_started = await service.get_available_lectures_for_student(
        test_user.id, include_in_progress=False
    )
    assert [e.lecture.title for e in not_started] == ["Other"]


async def _add_on_new_session(lecture_id, prerequisite_id):
    async with async_session_maker() as session:
        try:
            return await PrerequisiteService(session).add_prerequisite(lecture_id, prerequisite_id)
        finally:
            await session.rollback()


@pytest.mark.asyncio
async def test_concurrent_opposite_edges_leave_graph_acyclic(make_lecture):
    a = await make_lecture("A")
    b = await make_lecture("B")

    async with async_session_maker() as first:
        await PrerequisiteService(first).add_prerequisite(b.id, a.id)

        # The second writer runs its cycle check before B -> A is visible
        second = asyncio.create_task(_add_on_new_session(a.id, b.id))
        await asyncio.sleep(0.3)
        await first.commit()

        with pytest.raises(CircularDependencyError):
            await second

    async with async_session_maker() as session:
        report = await PrerequisiteService(session).audit_graph()
    assert report.edge_count == 1
    assert report.is_acyclic is True


@pytest.mark.asyncio
async def test_concurrent_duplicate_pair_is_a_conflict(make_lecture):
    a = await make_lecture("A")
    b = await make_lecture("B")

    async with async_session_maker() as first:
        await PrerequisiteService(first).add_prerequisite(b.id, a.id)

        second = asyncio.create_task(_add_on_new_session(b.id, a.id))
        await asyncio.sleep(0.3)
        await first.commit()

        with pytest.raises(ConflictError):
            await second

    async with async_session_maker() as session:
        report = await PrerequisiteService(session).audit_graph()
    assert report.edge_count == 1
