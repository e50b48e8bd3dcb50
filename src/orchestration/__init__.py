"""Orchestration layer - lecture workflow state machine."""

from src.orchestration.state_machine import (
    MASTERY_THRESHOLD,
    PromptType,
    WorkflowStateMachine,
)
from src.kernel.models.progress import ProgressStatus

__all__ = [
    "MASTERY_THRESHOLD",
    "PromptType",
    "WorkflowStateMachine",
    "ProgressStatus",
]
