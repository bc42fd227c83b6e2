"""Notification pipeline models.

A pipeline run owns its steps and mutates them in place. Progress callbacks
receive deep copies made with ``NotificationStep.snapshot()``.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from kiosk.models.base import BaseModel


class StepStatus(str, Enum):
    """Pipeline step status."""

    PENDING = "pending"
    PROCESSING = "processing"
    RETRYING = "retrying"
    COMPLETED = "completed"
    FAILED = "failed"


class NotificationStep(BaseModel):
    """One stage of the notification pipeline."""

    id: str
    name: str
    status: StepStatus = StepStatus.PENDING
    attempts: int = 0
    max_attempts: int = 1
    result: Any = None
    error: str | None = None

    # Timing of the most recent attempt
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_ms: int | None = None

    def snapshot(self) -> "NotificationStep":
        """Deep copy for progress callbacks."""
        return self.model_copy(deep=True)

    def reset(self) -> None:
        """Return the step to pending for a retry pass."""
        self.status = StepStatus.PENDING
        self.attempts = 0
        self.error = None
        self.result = None
        self.start_time = None
        self.end_time = None
        self.duration_ms = None


class NotificationPipelineResult(BaseModel):
    """Aggregate outcome of a pipeline run or retry pass."""

    success: bool
    total_steps: int
    completed_steps: int
    failed_steps: int
    steps: list[NotificationStep] = Field(default_factory=list)
    monday_record_id: str | None = None
    monday_record_url: str | None = None

    def summary(self) -> dict[str, int]:
        """Step counts by status."""
        return summarize_steps(self.steps)


class SendResult(BaseModel):
    """Outcome of an email or chat send."""

    success: bool
    message_id: str | None = None
    error: str | None = None


def summarize_steps(steps: list[NotificationStep]) -> dict[str, int]:
    """Count steps by status; processing includes retrying steps."""
    counts = {"completed": 0, "failed": 0, "processing": 0, "pending": 0, "total": len(steps)}
    for step in steps:
        if step.status == StepStatus.COMPLETED:
            counts["completed"] += 1
        elif step.status == StepStatus.FAILED:
            counts["failed"] += 1
        elif step.status in (StepStatus.PROCESSING, StepStatus.RETRYING):
            counts["processing"] += 1
        else:
            counts["pending"] += 1
    return counts
