"""Record store models: visitor records, uploaded files and staff."""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import Field

from kiosk.models.base import BaseModel, utc_now


class NotificationKind(str, Enum):
    """Notification channels tracked on a visitor record."""

    EMAIL = "email"
    CHAT = "chat"


class NotificationOutcome(str, Enum):
    """Delivery outcome of a tracked notification."""

    SENT = "sent"
    FAILED = "failed"


class VisitorRecord(BaseModel):
    """Fields written when a visitor record is created."""

    first_name: str
    last_name: str
    email: str
    company_name: str
    position: str | None = None
    host_id: str
    host_name: str = ""
    visit_date: date = Field(default_factory=lambda: utc_now().date())
    status: str = "Registered"

    @property
    def item_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @classmethod
    def from_registration(cls, registration: Any) -> "VisitorRecord":
        return cls(
            first_name=registration.first_name,
            last_name=registration.last_name,
            email=registration.email,
            company_name=registration.company_name,
            position=registration.position,
            host_id=registration.host_id,
            host_name=registration.host_name,
        )


class CreatedRecord(BaseModel):
    """Identifier of a newly created record."""

    id: str
    name: str


class UploadedFile(BaseModel):
    """Descriptor of a file attached to a record."""

    id: str
    filename: str
    column_id: str
    url: str | None = None


class NotificationEntry(BaseModel):
    """One tracked notification on a visitor record."""

    type: NotificationKind
    status: NotificationOutcome
    message_id: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)


class ItemStatus(BaseModel):
    """Processing status of a visitor record."""

    status: str | None = None
    notifications: list[NotificationEntry] = Field(default_factory=list)
    files: list[UploadedFile] = Field(default_factory=list)
    last_updated: datetime | None = None


class StaffMember(BaseModel):
    """A staff member who can host visitors."""

    id: str
    name: str
    email: str
    job_title: str | None = None
    google_chat: str | None = None
    is_active: bool = True
