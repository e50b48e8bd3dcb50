"""
Input validation and normalisation for prerequisite edges.

All checks run before any raise, so a single ValidationError lists every
violated field.
"""

import math
import uuid
from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, Optional

from src.kernel.errors import ValidationError
from src.kernel.models.lecture import (
    DEFAULT_IMPORTANCE_LEVEL,
    MAX_IMPORTANCE_LEVEL,
    MIN_IMPORTANCE_LEVEL,
)


@dataclass(frozen=True)
class NewEdge:
    lecture_id: uuid.UUID
    prerequisite_lecture_id: uuid.UUID
    is_required: bool
    importance_level: int


@dataclass(frozen=True)
class EdgePatch:
    is_required: Optional[bool] = None
    importance_level: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return self.is_required is None and self.importance_level is None


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up (2.5 -> 3, not banker's 2)."""
    return int(math.floor(value + 0.5))


def normalize_importance_level(level: Optional[float]) -> int:
    """Default when absent, otherwise round half-up and clamp to [1, 5]."""
    if level is None:
        return DEFAULT_IMPORTANCE_LEVEL
    return max(MIN_IMPORTANCE_LEVEL, min(MAX_IMPORTANCE_LEVEL, round_half_up(level)))


def parse_id(value: Any) -> Optional[uuid.UUID]:
    """UUID from a UUID or its string form; None when missing or malformed."""
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return uuid.UUID(value.strip())
        except ValueError:
            return None
    return None


def _check_importance(value: Any, errors: Dict[str, str]) -> Optional[float]:
    if value is None:
        return None
    # bool is a Real subclass; True must not pass as importance 1
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
        errors["importance_level"] = "Importance level must be a number between 1 and 5"
        return None
    if value < MIN_IMPORTANCE_LEVEL or value > MAX_IMPORTANCE_LEVEL:
        errors["importance_level"] = (
            f"Importance level must be between {MIN_IMPORTANCE_LEVEL} and {MAX_IMPORTANCE_LEVEL}"
        )
        return None
    return float(value)


def _check_is_required(value: Any, errors: Dict[str, str]) -> Optional[bool]:
    if value is None:
        return None
    if not isinstance(value, bool):
        errors["is_required"] = "is_required must be a boolean"
        return None
    return value


def validate_new_edge(
    lecture_id: Any,
    prerequisite_lecture_id: Any,
    is_required: Any = None,
    importance_level: Any = None,
) -> NewEdge:
    errors: Dict[str, str] = {}

    parsed_lecture = parse_id(lecture_id)
    parsed_prereq = parse_id(prerequisite_lecture_id)

    if lecture_id is None or (isinstance(lecture_id, str) and not lecture_id.strip()):
        errors["lecture_id"] = "Lecture ID is required"
    elif parsed_lecture is None:
        errors["lecture_id"] = "Lecture ID must be a valid UUID"

    if prerequisite_lecture_id is None or (
        isinstance(prerequisite_lecture_id, str) and not prerequisite_lecture_id.strip()
    ):
        errors["prerequisite_lecture_id"] = "Prerequisite lecture ID is required"
    elif parsed_prereq is None:
        errors["prerequisite_lecture_id"] = "Prerequisite lecture ID must be a valid UUID"
    elif parsed_lecture is not None and parsed_lecture == parsed_prereq:
        errors["prerequisite_lecture_id"] = "A lecture cannot be a prerequisite of itself"

    required = _check_is_required(is_required, errors)
    importance = _check_importance(importance_level, errors)

    if errors:
        raise ValidationError("Validation failed", invalid_fields=errors)

    return NewEdge(
        lecture_id=parsed_lecture,
        prerequisite_lecture_id=parsed_prereq,
        is_required=True if required is None else required,
        importance_level=normalize_importance_level(importance),
    )


def validate_edge_patch(is_required: Any = None, importance_level: Any = None) -> EdgePatch:
    errors: Dict[str, str] = {}
    required = _check_is_required(is_required, errors)
    importance = _check_importance(importance_level, errors)
    if errors:
        raise ValidationError("Validation failed", invalid_fields=errors)
    return EdgePatch(
        is_required=required,
        importance_level=None if importance is None else normalize_importance_level(importance),
    )
