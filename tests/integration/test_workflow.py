"""Integration tests for the lecture workflow state machine."""

import uuid

import pytest

from src.engines.prerequisites.prerequisite_service import PrerequisiteService
from src.kernel.errors import (
    InvalidStatusError,
    InvalidTransitionError,
    NotFoundError,
    PrerequisitesNotSatisfiedError,
    ValidationError,
)
from src.kernel.events.event_store import EventStore
from src.kernel.models import EventType, ProgressStatus
from src.orchestration.state_machine import MASTERY_THRESHOLD, WorkflowStateMachine


@pytest.fixture
def workflow(db_session) -> WorkflowStateMachine:
    return WorkflowStateMachine(db_session)


@pytest.mark.asyncio
async def test_new_record_without_prerequisites_is_ready(workflow, db_session, make_lecture, test_user):
    lecture = await make_lecture("Intro")

    record = await workflow.get_or_create_progress(test_user.id, lecture.id)
    assert record.status == ProgressStatus.READY

    again = await workflow.get_or_create_progress(test_user.id, lecture.id)
    assert again.id == record.id

    await db_session.flush()
    created = await EventStore(db_session).count_events(event_type=EventType.PROGRESS_CREATED)
    assert created == 1


@pytest.mark.asyncio
async def test_locked_until_prerequisite_mastered(workflow, db_session, make_lecture, make_edge, test_user, set_progress):
    basics = await make_lecture("Basics")
    advanced = await make_lecture("Advanced")
    await make_edge(advanced, basics)

    record = await workflow.get_or_create_progress(test_user.id, advanced.id)
    assert record.status == ProgressStatus.LOCKED

    with pytest.raises(PrerequisitesNotSatisfiedError) as exc_info:
        await workflow.start_lecture(test_user.id, advanced.id)
    assert exc_info.value.missing_required_prerequisites == [basics.id]
    assert exc_info.value.to_payload()["missing_required_prerequisites"] == [str(basics.id)]

    with pytest.raises(PrerequisitesNotSatisfiedError):
        await workflow.update_progress_status(test_user.id, advanced.id, "READY")

    await set_progress(test_user, basics, ProgressStatus.MASTERED)

    unlocked = await workflow.get_or_create_progress(test_user.id, advanced.id)
    assert unlocked.status == ProgressStatus.READY

    await db_session.flush()
    unlocks = await EventStore(db_session).count_events(
        entity_id=unlocked.id,
        event_type=EventType.LECTURE_UNLOCKED,
    )
    assert unlocks == 1


@pytest.mark.asyncio
async def test_full_workflow_with_failed_evaluation(workflow, make_lecture, test_user):
    lecture = await make_lecture("Lecture")
    uid, lid = test_user.id, lecture.id

    record = await workflow.start_lecture(uid, lid)
    assert record.status == ProgressStatus.READY
    assert record.last_viewed is not None

    record = await workflow.submit_reflection(uid, lid, "pre-lecture")
    assert record.status == ProgressStatus.STARTED

    record = await workflow.mark_watched(uid, lid)
    assert record.status == ProgressStatus.WATCHED

    record = await workflow.submit_reflection(uid, lid, "initial")
    assert record.status == ProgressStatus.INITIAL_REFLECTION

    record = await workflow.submit_reflection(uid, lid, "mastery")
    assert record.status == ProgressStatus.MASTERY_TESTING

    failed = await workflow.submit_mastery_score(uid, lid, MASTERY_THRESHOLD - 5)
    assert failed.mastered is False
    assert failed.progress.status == ProgressStatus.INITIAL_REFLECTION
    assert failed.progress.last_mastery_score == 65.0
    assert failed.progress.completed_at is None

    await workflow.submit_reflection(uid, lid, "mastery")
    passed = await workflow.submit_mastery_score(uid, lid, MASTERY_THRESHOLD)
    assert passed.mastered is True
    assert passed.progress.status == ProgressStatus.MASTERED
    assert passed.progress.completed_at is not None

    # Discussion is allowed once mastered and changes nothing
    after = await workflow.submit_reflection(uid, lid, "discussion")
    assert after.status == ProgressStatus.MASTERED

    status = await workflow.get_completion_status(uid, lid)
    assert status.exists is True
    assert status.is_completed is True
    assert status.is_in_progress is False


@pytest.mark.asyncio
async def test_mastery_unlocks_dependents(workflow, db_session, make_lecture, test_user, test_admin):
    first = await make_lecture("First")
    second = await make_lecture("Second")
    await PrerequisiteService(db_session).add_prerequisite(second.id, first.id, user_id=test_admin.id)

    locked = await workflow.get_or_create_progress(test_user.id, second.id)
    assert locked.status == ProgressStatus.LOCKED

    await workflow.submit_reflection(test_user.id, first.id, "pre-lecture")
    await workflow.mark_watched(test_user.id, first.id)
    await workflow.submit_reflection(test_user.id, first.id, "initial")
    await workflow.submit_reflection(test_user.id, first.id, "mastery")
    await workflow.submit_mastery_score(test_user.id, first.id, 90)

    record = await workflow.start_lecture(test_user.id, second.id)
    assert record.status == ProgressStatus.READY


@pytest.mark.asyncio
async def test_wrong_prompt_for_stage(workflow, make_lecture, test_user):
    lecture = await make_lecture("Lecture")

    with pytest.raises(InvalidTransitionError) as exc_info:
        await workflow.submit_reflection(test_user.id, lecture.id, "initial")
    payload = exc_info.value.to_payload()
    assert payload["current_status"] == "READY"
    assert payload["valid_transitions"] == ["STARTED"]

    with pytest.raises(ValidationError):
        await workflow.submit_reflection(test_user.id, lecture.id, "discussion")

    with pytest.raises(ValidationError):
        await workflow.submit_reflection(test_user.id, lecture.id, "essay")


@pytest.mark.asyncio
async def test_forward_only_updates(workflow, make_lecture, test_user):
    lecture = await make_lecture("Lecture")
    uid, lid = test_user.id, lecture.id

    record = await workflow.update_progress_status(uid, lid, "READY")
    assert record.status == ProgressStatus.READY

    with pytest.raises(InvalidTransitionError):
        await workflow.update_progress_status(uid, lid, "WATCHED")
    with pytest.raises(InvalidStatusError):
        await workflow.update_progress_status(uid, lid, "FINISHED")

    record = await workflow.update_progress_status(uid, lid, ProgressStatus.STARTED)
    assert record.status == ProgressStatus.STARTED

    with pytest.raises(InvalidTransitionError):
        await workflow.update_progress_status(uid, lid, "READY")

    # Watching again after moving on only refreshes last_viewed
    await workflow.mark_watched(uid, lid)
    await workflow.submit_reflection(uid, lid, "initial")
    rewatched = await workflow.mark_watched(uid, lid)
    assert rewatched.status == ProgressStatus.INITIAL_REFLECTION


@pytest.mark.asyncio
async def test_mark_watched_requires_started(workflow, make_lecture, test_user):
    lecture = await make_lecture("Lecture")
    with pytest.raises(InvalidTransitionError):
        await workflow.mark_watched(test_user.id, lecture.id)


@pytest.mark.asyncio
@pytest.mark.parametrize("score", [-1, 101, True, "80", None])
async def test_mastery_score_validation(workflow, make_lecture, test_user, score):
    lecture = await make_lecture("Lecture")
    with pytest.raises(ValidationError) as exc_info:
        await workflow.submit_mastery_score(test_user.id, lecture.id, score)
    assert "score" in exc_info.value.invalid_fields


@pytest.mark.asyncio
async def test_mastery_score_outside_evaluation_stage(workflow, make_lecture, test_user):
    lecture = await make_lecture("Lecture")
    with pytest.raises(InvalidTransitionError):
        await workflow.submit_mastery_score(test_user.id, lecture.id, 95)


@pytest.mark.asyncio
async def test_completion_status_is_read_only(workflow, db_session, make_lecture, test_user):
    lecture = await make_lecture("Lecture")

    status = await workflow.get_completion_status(test_user.id, lecture.id)
    assert status.exists is False
    assert status.status == ProgressStatus.LOCKED
    assert await workflow.progress.get_progress(test_user.id, lecture.id) is None

    with pytest.raises(NotFoundError):
        await workflow.get_completion_status(uuid.uuid4(), lecture.id)


@pytest.mark.asyncio
async def test_list_user_progress(workflow, make_lecture, test_user, set_progress):
    a = await make_lecture("A")
    b = await make_lecture("B")
    c = await make_lecture("C")
    await set_progress(test_user, a, ProgressStatus.MASTERED)
    await set_progress(test_user, b, ProgressStatus.WATCHED)
    await set_progress(test_user, c, ProgressStatus.READY)

    summary = await workflow.list_user_progress(test_user.id)
    assert summary.total == 3
    assert summary.completed == 1
    assert summary.in_progress == 2

    with pytest.raises(NotFoundError):
        await workflow.list_user_progress(uuid.uuid4())
