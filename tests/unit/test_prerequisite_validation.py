"""Unit tests for prerequisite edge input validation."""

import uuid

import pytest

from src.engines.prerequisites.validation import (
    normalize_importance_level,
    parse_id,
    round_half_up,
    validate_edge_patch,
    validate_new_edge,
)
from src.kernel.errors import ValidationError


class TestRounding:
    @pytest.mark.parametrize(
        "value,expected",
        [(0.5, 1), (1.5, 2), (2.5, 3), (2.49, 2), (42.5, 43), (100.0, 100)],
    )
    def test_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_importance_default_and_clamp(self):
        assert normalize_importance_level(None) == 3
        assert normalize_importance_level(2.5) == 3
        assert normalize_importance_level(4.4) == 4
        assert normalize_importance_level(1.0) == 1


class TestParseId:
    def test_accepts_uuid_and_string(self):
        value = uuid.uuid4()
        assert parse_id(value) == value
        assert parse_id(str(value)) == value
        assert parse_id(f"  {value} ") == value

    @pytest.mark.parametrize("value", [None, "", "not-a-uuid", 42, True])
    def test_rejects_everything_else(self, value):
        assert parse_id(value) is None


class TestValidateNewEdge:
    def test_defaults(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        edge = validate_new_edge(a, str(b))
        assert edge.lecture_id == a
        assert edge.prerequisite_lecture_id == b
        assert edge.is_required is True
        assert edge.importance_level == 3

    def test_fractional_importance_rounds(self):
        edge = validate_new_edge(uuid.uuid4(), uuid.uuid4(), False, 4.5)
        assert edge.importance_level == 5
        assert edge.is_required is False

    def test_self_loop_rejected(self):
        a = uuid.uuid4()
        with pytest.raises(ValidationError) as exc_info:
            validate_new_edge(a, a)
        assert "prerequisite_lecture_id" in exc_info.value.invalid_fields

    @pytest.mark.parametrize("level", [0, 6, -1, 5.6, True, "3", float("nan"), float("inf")])
    def test_bad_importance_rejected(self, level):
        with pytest.raises(ValidationError) as exc_info:
            validate_new_edge(uuid.uuid4(), uuid.uuid4(), True, level)
        assert set(exc_info.value.invalid_fields) == {"importance_level"}

    def test_is_required_must_be_boolean(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_new_edge(uuid.uuid4(), uuid.uuid4(), "yes")
        assert "is_required" in exc_info.value.invalid_fields

    def test_every_invalid_field_is_listed(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_new_edge(None, "garbage", 1, 9)
        fields = exc_info.value.invalid_fields
        assert set(fields) == {"lecture_id", "prerequisite_lecture_id", "is_required", "importance_level"}
        assert exc_info.value.status_code == 400
        payload = exc_info.value.to_payload()
        assert payload["error"] == "Validation failed"
        assert payload["invalid_fields"] == fields


class TestValidateEdgePatch:
    def test_empty_patch(self):
        patch = validate_edge_patch()
        assert patch.is_empty

    def test_partial_patch(self):
        patch = validate_edge_patch(importance_level=1.4)
        assert patch.importance_level == 1
        assert patch.is_required is None
        assert not patch.is_empty

    def test_invalid_patch(self):
        with pytest.raises(ValidationError):
            validate_edge_patch(is_required="no")
