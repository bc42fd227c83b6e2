"""Tests for the in-memory record store."""

import pytest

from kiosk.models.visitor import NotificationKind, NotificationOutcome, StaffMember, VisitorRecord
from kiosk.services.record_store import DEFAULT_STAFF, InMemoryRecordStore
from kiosk.utils.exceptions import NotFoundError
from kiosk.utils.files import VisitorFile


def _record(email: str = "jane.doe@example.com") -> VisitorRecord:
    return VisitorRecord(
        first_name="Jane",
        last_name="Doe",
        email=email,
        company_name="Acme Films",
        host_id="1",
        host_name="Sarah Johnson",
    )


class TestInMemoryRecordStore:
    """Tests for InMemoryRecordStore."""

    @pytest.mark.asyncio
    async def test_create_and_status(self):
        store = InMemoryRecordStore()
        created = await store.create_visitor_record(_record())
        file = VisitorFile(content=b"png", filename="Jane_Doe_signature.png", content_type="image/png", column_id="files__1")

        uploaded = await store.upload_file(created.id, "files__1", file)
        await store.track_notification_status(created.id, NotificationKind.CHAT, NotificationOutcome.SENT, "m-1")
        await store.update_item(created.id, {"status": "Registration Complete"})
        status = await store.get_item_status(created.id)

        assert created.id.startswith("visitor_")
        assert created.name == "Jane Doe"
        assert uploaded.url.endswith("/Jane_Doe_signature.png")
        assert status.status == "Registration Complete"
        assert status.notifications[0].message_id == "m-1"
        assert status.files == [uploaded]

    @pytest.mark.asyncio
    async def test_unknown_item(self):
        store = InMemoryRecordStore()

        with pytest.raises(NotFoundError):
            await store.update_item("missing", {"status": "x"})

    @pytest.mark.asyncio
    async def test_find_visitor_by_email(self):
        store = InMemoryRecordStore()
        created = await store.create_visitor_record(_record())

        assert (await store.find_visitor_by_email("JANE.DOE@example.com")).id == created.id
        assert await store.find_visitor_by_email("other@example.com") is None

    @pytest.mark.asyncio
    async def test_staff_directory(self):
        store = InMemoryRecordStore(staff=[
            StaffMember(id="1", name="Active", email="a@sqla.com"),
            StaffMember(id="2", name="Gone", email="g@sqla.com", is_active=False),
        ])

        assert [m.name for m in await store.get_staff_directory()] == ["Active"]
        assert (await store.find_staff_member("1")).name == "Active"
        assert await store.find_staff_member("2") is None

    @pytest.mark.asyncio
    async def test_seeded_staff_is_copied(self):
        store = InMemoryRecordStore()
        store.staff[0].is_active = False

        assert DEFAULT_STAFF[0].is_active is True
        assert (await store.test_connection())["success"] is True
