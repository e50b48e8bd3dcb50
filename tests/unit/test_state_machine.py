"""Unit tests for the workflow transition table and stage helpers."""

import pytest

from src.kernel.errors import InvalidStatusError, ValidationError
from src.kernel.models.progress import ProgressStatus
from src.orchestration.state_machine import (
    PromptType,
    can_transition,
    completion_percentage,
    get_workflow_stage,
    minimum_word_count,
    next_status_for_prompt_type,
    parse_prompt_type,
    parse_status,
    prompt_type_for_status,
    valid_transitions,
)


class TestParseStatus:
    def test_accepts_enum_and_value(self):
        assert parse_status("WATCHED") == ProgressStatus.WATCHED
        assert parse_status(ProgressStatus.READY) is ProgressStatus.READY

    @pytest.mark.parametrize("value", ["watched", "DONE", "", None, 3])
    def test_rejects_unknown(self, value):
        with pytest.raises(InvalidStatusError) as exc_info:
            parse_status(value)
        assert "status" in exc_info.value.invalid_fields


class TestTransitions:
    def test_happy_path_is_allowed(self):
        path = [
            ProgressStatus.LOCKED,
            ProgressStatus.READY,
            ProgressStatus.STARTED,
            ProgressStatus.WATCHED,
            ProgressStatus.INITIAL_REFLECTION,
            ProgressStatus.MASTERY_TESTING,
            ProgressStatus.MASTERED,
        ]
        for current, target in zip(path, path[1:]):
            assert can_transition(current, target)

    def test_failed_evaluation_goes_back_to_reflection(self):
        assert can_transition("MASTERY_TESTING", "INITIAL_REFLECTION")

    def test_mastered_is_terminal(self):
        assert valid_transitions(ProgressStatus.MASTERED) == []
        for status in ProgressStatus:
            assert not can_transition(ProgressStatus.MASTERED, status)

    def test_no_skipping_or_going_back(self):
        assert not can_transition("READY", "WATCHED")
        assert not can_transition("LOCKED", "MASTERED")
        assert not can_transition("WATCHED", "STARTED")
        assert not can_transition("INITIAL_REFLECTION", "WATCHED")

    def test_only_regression_is_failed_evaluation(self):
        for current in ProgressStatus:
            for target in valid_transitions(current):
                if target.rank < current.rank:
                    assert (current, target) == (
                        ProgressStatus.MASTERY_TESTING,
                        ProgressStatus.INITIAL_REFLECTION,
                    )

    def test_valid_transitions_in_workflow_order(self):
        assert valid_transitions("MASTERY_TESTING") == [
            ProgressStatus.INITIAL_REFLECTION,
            ProgressStatus.MASTERED,
        ]


class TestStages:
    @pytest.mark.parametrize(
        "status,expected",
        [
            ("LOCKED", 0),
            ("READY", 17),
            ("STARTED", 33),
            ("WATCHED", 50),
            ("INITIAL_REFLECTION", 67),
            ("MASTERY_TESTING", 83),
            ("MASTERED", 100),
        ],
    )
    def test_completion_percentage(self, status, expected):
        assert completion_percentage(status) == expected

    def test_stage_labels(self):
        assert get_workflow_stage("LOCKED").label == "Locked"
        assert get_workflow_stage("MASTERED").label == "Completed"

    def test_prompt_types(self):
        assert prompt_type_for_status("READY") == PromptType.PRE_LECTURE
        assert prompt_type_for_status("WATCHED") == PromptType.INITIAL
        assert prompt_type_for_status("INITIAL_REFLECTION") == PromptType.MASTERY
        assert prompt_type_for_status("STARTED") is None
        assert next_status_for_prompt_type("initial") == ProgressStatus.INITIAL_REFLECTION
        assert minimum_word_count("mastery") == 50

    def test_unknown_prompt_type(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_prompt_type("essay")
        assert "prompt_type" in exc_info.value.invalid_fields
