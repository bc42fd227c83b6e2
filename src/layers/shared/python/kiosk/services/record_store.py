"""Record store interface and an in-memory implementation.

The record store holds visitor records, their uploaded files and
notification tracking, plus the staff directory used to pick hosts.
"""

from abc import ABC, abstractmethod
from typing import Any

import structlog

from kiosk.models.base import generate_ulid, utc_now
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
from kiosk.utils.exceptions import NotFoundError
from kiosk.utils.files import VisitorFile

logger = structlog.get_logger()

PHOTO_COLUMN = "files"
SIGNATURE_COLUMN = "files__1"

DEFAULT_STAFF = [
    StaffMember(id="1", name="Sarah Johnson", email="sarah@sqla.com", job_title="Creative Director", google_chat="@sarah.johnson"),
    StaffMember(id="2", name="Mike Davis", email="mike@sqla.com", job_title="Producer", google_chat="@mike.davis"),
    StaffMember(id="3", name="Lisa Chen", email="lisa@sqla.com", job_title="Operations Manager", google_chat="@lisa.chen"),
    StaffMember(id="4", name="John Smith", email="john@sqla.com", job_title="Technical Director", google_chat="@john.smith"),
]


class RecordStore(ABC):
    """Work-management board holding visitor records."""

    account_slug: str = "sqla-studio"
    visitors_board_id: str = "visitors"

    @abstractmethod
    async def create_visitor_record(self, record: VisitorRecord) -> CreatedRecord:
        """Create a visitor record and return its id."""

    @abstractmethod
    async def update_item(self, item_id: str, column_values: dict[str, Any]) -> None:
        """Write column values on a record."""

    @abstractmethod
    async def upload_file(self, item_id: str, column_id: str, file: VisitorFile) -> UploadedFile:
        """Attach a file to a record's file column."""

    @abstractmethod
    async def track_notification_status(
        self,
        item_id: str,
        kind: NotificationKind | str,
        status: NotificationOutcome | str,
        message_id: str | None = None,
    ) -> None:
        """Record the outcome of a notification on a record."""

    @abstractmethod
    async def get_item_status(self, item_id: str) -> ItemStatus:
        """Read a record's processing status and tracked notifications."""

    @abstractmethod
    async def find_visitor_by_email(self, email: str) -> CreatedRecord | None:
        """Find a returning visitor's record."""

    @abstractmethod
    async def get_staff_directory(self) -> list[StaffMember]:
        """List staff members."""

    async def find_staff_member(self, staff_id: str) -> StaffMember | None:
        staff = await self.get_staff_directory()
        return next((member for member in staff if member.id == staff_id), None)

    @abstractmethod
    async def test_connection(self) -> dict[str, Any]:
        """Check credentials; returns ``{"success": bool, ...}``."""

    def record_url(self, item_id: str) -> str:
        """Link to the record on the board."""
        return f"https://{self.account_slug}.monday.com/boards/{self.visitors_board_id}/pulses/{item_id}"


class InMemoryRecordStore(RecordStore):
    """Dict-backed record store for development and tests."""

    def __init__(
        self,
        staff: list[StaffMember] | None = None,
        account_slug: str = "sqla-studio",
        visitors_board_id: str = "visitors",
    ):
        self.account_slug = account_slug
        self.visitors_board_id = visitors_board_id
        self.items: dict[str, dict[str, Any]] = {}
        self.staff = [member.model_copy() for member in (DEFAULT_STAFF if staff is None else staff)]
        self.logger = logger.bind(service="in_memory_record_store")

    def _get(self, item_id: str) -> dict[str, Any]:
        item = self.items.get(item_id)
        if item is None:
            raise NotFoundError("VisitorRecord", item_id)
        return item

    async def create_visitor_record(self, record: VisitorRecord) -> CreatedRecord:
        item_id = f"visitor_{generate_ulid()}"
        self.items[item_id] = {
            "record": record,
            "columns": {"status": record.status},
            "files": [],
            "notifications": [],
            "last_updated": utc_now(),
        }
        self.logger.info("Visitor record created", item_id=item_id)
        return CreatedRecord(id=item_id, name=record.item_name)

    async def update_item(self, item_id: str, column_values: dict[str, Any]) -> None:
        item = self._get(item_id)
        item["columns"].update(column_values)
        item["last_updated"] = utc_now()

    async def upload_file(self, item_id: str, column_id: str, file: VisitorFile) -> UploadedFile:
        item = self._get(item_id)
        uploaded = UploadedFile(
            id=generate_ulid(),
            filename=file.filename,
            column_id=column_id,
            url=f"https://mock-cdn.sqla.com/{column_id}/{item_id}/{file.filename}",
        )
        item["files"].append(uploaded)
        item["last_updated"] = utc_now()
        return uploaded

    async def track_notification_status(
        self,
        item_id: str,
        kind: NotificationKind | str,
        status: NotificationOutcome | str,
        message_id: str | None = None,
    ) -> None:
        item = self._get(item_id)
        item["notifications"].append(
            NotificationEntry(type=kind, status=status, message_id=message_id)
        )
        item["last_updated"] = utc_now()

    async def get_item_status(self, item_id: str) -> ItemStatus:
        item = self._get(item_id)
        return ItemStatus(
            status=item["columns"].get("status"),
            notifications=list(item["notifications"]),
            files=list(item["files"]),
            last_updated=item["last_updated"],
        )

    async def find_visitor_by_email(self, email: str) -> CreatedRecord | None:
        email = email.lower()
        for item_id, item in self.items.items():
            record: VisitorRecord = item["record"]
            if record.email.lower() == email:
                return CreatedRecord(id=item_id, name=record.item_name)
        return None

    async def get_staff_directory(self) -> list[StaffMember]:
        return [member for member in self.staff if member.is_active]

    async def test_connection(self) -> dict[str, Any]:
        return {"success": True, "user": {"id": "mock-user-id", "name": "Mock User", "email": "mock@sqla.com"}}
