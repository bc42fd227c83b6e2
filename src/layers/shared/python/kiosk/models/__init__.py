"""Pydantic models for kiosk entities."""

from kiosk.models.base import BaseModel, generate_ulid, utc_now
from kiosk.models.pipeline import (
    NotificationPipelineResult,
    NotificationStep,
    SendResult,
    StepStatus,
    summarize_steps,
)
from kiosk.models.registration import VisitorRegistration
from kiosk.models.visitor import (
    CreatedRecord,
    ItemStatus,
    NotificationEntry,
    NotificationKind,
    NotificationOutcome,
    StaffMember,
    UploadedFile,
    VisitorRecord,
)

__all__ = [
    # Base
    "BaseModel",
    "generate_ulid",
    "utc_now",
    # Pipeline
    "NotificationPipelineResult",
    "NotificationStep",
    "SendResult",
    "StepStatus",
    "summarize_steps",
    # Registration
    "VisitorRegistration",
    # Record store
    "CreatedRecord",
    "ItemStatus",
    "NotificationEntry",
    "NotificationKind",
    "NotificationOutcome",
    "StaffMember",
    "UploadedFile",
    "VisitorRecord",
]
