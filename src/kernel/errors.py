"""
Typed domain errors.

Every expected failure of the prerequisite graph and the workflow engine is
one of these. The HTTP layer maps them 1:1 onto status codes and JSON bodies
(see `src/main.py`); anything else is an unexpected 500.
"""

import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from src.logging_config import get_logger

logger = get_logger(__name__)


class AppError(Exception):
    """Base class for expected, typed application errors."""

    status_code: int = 500

    def __init__(self, message: str = "Application error"):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(AppError):
    """Malformed or missing input. `invalid_fields` lists every violated field."""

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        invalid_fields: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.invalid_fields = dict(invalid_fields or {})

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        if self.invalid_fields:
            payload["invalid_fields"] = self.invalid_fields
        return payload


class InvalidStatusError(ValidationError):
    """A progress status value outside the enumerated set."""

    def __init__(self, value: Any):
        super().__init__(
            f"Invalid progress status: {value!r}",
            invalid_fields={"status": f"Unknown status {value!r}"},
        )
        self.value = value


class InvalidTransitionError(ValidationError):
    """The workflow does not allow moving from the current status to the target."""

    def __init__(self, current_status: str, target_status: str, valid: Sequence[str]):
        super().__init__(
            f"Invalid status transition from {current_status} to {target_status}",
            invalid_fields={"status": f"Cannot transition from {current_status} to {target_status}"},
        )
        self.current_status = current_status
        self.target_status = target_status
        self.valid_transitions = list(valid)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["current_status"] = self.current_status
        payload["valid_transitions"] = self.valid_transitions
        return payload


class PrerequisitesNotSatisfiedError(ValidationError):
    """A lecture was opened while required prerequisites are still missing."""

    def __init__(self, lecture_id: uuid.UUID, missing: Sequence[uuid.UUID]):
        super().__init__("Prerequisites not satisfied")
        self.lecture_id = lecture_id
        self.missing_required_prerequisites = list(missing)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["missing_required_prerequisites"] = [
            str(m) for m in self.missing_required_prerequisites
        ]
        return payload


class NotFoundError(AppError):
    """A referenced entity does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} with ID {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(AppError):
    """Duplicate resource. Carries the id of the record that already exists."""

    status_code = 409

    def __init__(self, message: str = "Resource conflict", existing_id: Optional[uuid.UUID] = None):
        super().__init__(message)
        self.existing_id = existing_id

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        if self.existing_id is not None:
            payload["existing_id"] = str(self.existing_id)
        return payload


class CircularDependencyError(AppError):
    """Adding an edge would close a cycle in the prerequisite graph."""

    status_code = 400

    def __init__(
        self,
        lecture_ids: Sequence[uuid.UUID],
        path: Sequence[str],
        message: str = "Adding this prerequisite would create a circular dependency",
    ):
        super().__init__(message)
        self.lecture_ids = list(lecture_ids)
        self.path = list(path)
        self.description = " → ".join(self.path)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["cycle_details"] = {
            "path": self.path,
            "description": f"Circular dependency detected: {self.description}",
        }
        return payload


class DatabaseError(AppError):
    """
    Storage-layer failure. Retryable; the message is logged but never returned
    to callers.
    """

    status_code = 500
    retryable = True

    def __init__(self, message: str = "Database operation failed"):
        super().__init__(message)


@contextmanager
def storage_errors(operation: str, **context: Any) -> Iterator[None]:
    """
    Translate driver/ORM failures inside the block into DatabaseError.

    IntegrityError is re-raised untouched so callers can map constraint
    violations onto domain errors (duplicate edge -> ConflictError).
    """
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as e:
        logger.exception(
            "Storage failure during %s",
            operation,
            extra={k: str(v) for k, v in context.items()},
        )
        raise DatabaseError(f"Failed to {operation}") from e


__all__: List[str] = [
    "AppError",
    "ValidationError",
    "InvalidStatusError",
    "InvalidTransitionError",
    "PrerequisitesNotSatisfiedError",
    "NotFoundError",
    "ConflictError",
    "CircularDependencyError",
    "DatabaseError",
    "storage_errors",
]
