"""Monday.com record store over the GraphQL API.

Visitor records live on the visitors board, hosts on the staff board.
Queries go to ``/v2``; file uploads use the GraphQL multipart endpoint at
``/v2/file``.
"""

import json
import re
from typing import Any

import httpx
import structlog

from kiosk.config import MondaySettings
from kiosk.execution.retry_policy import NETWORK_TIMEOUT_SECONDS, request_once
from kiosk.models.base import utc_now
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
from kiosk.services.record_store import RecordStore
from kiosk.utils.cache import TTLCache
from kiosk.utils.exceptions import (
    ExternalServiceError,
    HttpStatusError,
    KioskError,
    NotFoundError,
    RateLimitError,
    UnauthorizedError,
)
from kiosk.utils.files import VisitorFile

logger = structlog.get_logger()

STAFF_CACHE_KEY = "staff_directory"
STAFF_CACHE_TTL_MINUTES = 10

# Item updates written by track_notification_status start with this marker
_NOTIFICATION_MARKER = "[notification]"
_NOTIFICATION_RE = re.compile(
    r"^\[notification\] (?P<type>email|chat) (?P<status>sent|failed)(?: message_id=(?P<message_id>\S+))?"
)

CREATE_ITEM_MUTATION = """
mutation create_item($board_id: ID!, $item_name: String!, $column_values: JSON) {
  create_item(board_id: $board_id, item_name: $item_name, column_values: $column_values) {
    id
    name
  }
}
"""

UPDATE_ITEM_MUTATION = """
mutation update_item($board_id: ID!, $item_id: ID!, $column_values: JSON!) {
  change_multiple_column_values(board_id: $board_id, item_id: $item_id, column_values: $column_values) {
    id
  }
}
"""

CREATE_UPDATE_MUTATION = """
mutation create_update($item_id: ID!, $body: String!) {
  create_update(item_id: $item_id, body: $body) {
    id
  }
}
"""

ITEM_STATUS_QUERY = """
query item_status($item_id: ID!) {
  items(ids: [$item_id]) {
    id
    updated_at
    column_values {
      id
      text
    }
    updates {
      body
      created_at
    }
    assets {
      id
      name
      public_url
    }
  }
}
"""

FIND_BY_EMAIL_QUERY = """
query find_visitor($board_id: ID!, $email: CompareValue!) {
  items_page_by_column_values(board_id: $board_id, limit: 1, columns: [{column_id: "email", column_values: [$email]}]) {
    items {
      id
      name
    }
  }
}
"""

STAFF_QUERY = """
query staff($board_id: ID!) {
  boards(ids: [$board_id]) {
    items_page(limit: 500) {
      items {
        id
        name
        column_values {
          id
          text
          column {
            title
          }
        }
      }
    }
  }
}
"""


class MondayRecordStore(RecordStore):
    """Record store backed by Monday.com boards.

    Errors:
        HTTP 429 raises RateLimitError and 401/403 raise UnauthorizedError.
        Other non-2xx responses raise HttpStatusError, and GraphQL level
        errors raise ExternalServiceError.
    """

    def __init__(
        self,
        settings: MondaySettings,
        cache: TTLCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.account_slug = settings.account_slug
        self.visitors_board_id = settings.visitors_board_id
        self.cache = cache or TTLCache()
        self._transport = transport
        self.logger = logger.bind(service="monday_record_store")

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": self.settings.api_key or "",
            "API-Version": self.settings.api_version,
        }

    async def _post(self, url: str, **request_kwargs: Any) -> dict[str, Any]:
        try:
            response = await request_once(
                url,
                method="POST",
                timeout=NETWORK_TIMEOUT_SECONDS,
                service="monday",
                transport=self._transport,
                headers=self.headers,
                **request_kwargs,
            )
        except HttpStatusError as e:
            if e.http_status == 429:
                raise RateLimitError("Monday.com rate limit exceeded") from e
            if e.http_status in (401, 403):
                raise UnauthorizedError(
                    f"Monday.com rejected the API key: unauthorized (HTTP {e.http_status})"
                ) from e
            raise

        try:
            body = response.json()
        except json.JSONDecodeError as e:
            raise ExternalServiceError("monday", "Monday.com returned an invalid response") from e

        if body.get("errors"):
            messages = "; ".join(err.get("message", "unknown error") for err in body["errors"])
            raise ExternalServiceError("monday", f"Monday.com GraphQL error: {messages}", original_error=messages)

        if body.get("error_message"):
            raise ExternalServiceError(
                "monday",
                f"Monday.com API error: {body['error_message']}",
                original_error=body.get("error_code"),
            )

        return body.get("data") or {}

    async def query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run a GraphQL query or mutation and return its ``data``."""
        return await self._post(self.settings.api_url, json={"query": query, "variables": variables or {}})

    async def create_visitor_record(self, record: VisitorRecord) -> CreatedRecord:
        column_values = {
            "text": record.item_name,
            "email": {"email": record.email, "text": record.email},
            "text4": record.company_name or "",
            "text5": record.host_name,
            "date": {"date": record.visit_date.isoformat()},
            "status": {"label": record.status},
        }

        data = await self.query(
            CREATE_ITEM_MUTATION,
            {
                "board_id": self.settings.visitors_board_id,
                "item_name": record.item_name,
                "column_values": json.dumps(column_values),
            },
        )

        created = data.get("create_item")
        if not created:
            raise ExternalServiceError("monday", "Monday.com did not return the created item")

        self.logger.info("Visitor record created", item_id=created["id"])
        return CreatedRecord(id=str(created["id"]), name=created.get("name", record.item_name))

    async def update_item(self, item_id: str, column_values: dict[str, Any]) -> None:
        await self.query(
            UPDATE_ITEM_MUTATION,
            {
                "board_id": self.settings.visitors_board_id,
                "item_id": item_id,
                "column_values": json.dumps(column_values),
            },
        )

    async def upload_file(self, item_id: str, column_id: str, file: VisitorFile) -> UploadedFile:
        mutation = (
            "mutation add_file($file: File!) { "
            f"add_file_to_column(item_id: {json.dumps(str(item_id))}, column_id: {json.dumps(column_id)}, file: $file) "
            "{ id name url } }"
        )

        data = await self._post(
            self.settings.file_api_url,
            data={"query": mutation},
            files={"variables[file]": (file.filename, file.content, file.content_type)},
        )

        asset = data.get("add_file_to_column")
        if not asset:
            raise ExternalServiceError("monday", f"Monday.com did not accept {file.filename}")

        self.logger.info("File uploaded", item_id=item_id, column_id=column_id, filename=file.filename)
        return UploadedFile(
            id=str(asset["id"]),
            filename=asset.get("name") or file.filename,
            column_id=column_id,
            url=asset.get("url"),
        )

    async def track_notification_status(
        self,
        item_id: str,
        kind: NotificationKind | str,
        status: NotificationOutcome | str,
        message_id: str | None = None,
    ) -> None:
        kind = NotificationKind(kind).value
        status = NotificationOutcome(status).value

        body = f"{_NOTIFICATION_MARKER} {kind} {status}"
        if message_id:
            body += f" message_id={message_id}"

        await self.query(CREATE_UPDATE_MUTATION, {"item_id": item_id, "body": body})
        await self.update_item(item_id, {"notification_status": f"{kind.capitalize()} {status}"})

    async def get_item_status(self, item_id: str) -> ItemStatus:
        data = await self.query(ITEM_STATUS_QUERY, {"item_id": item_id})
        items = data.get("items") or []
        if not items:
            raise NotFoundError("VisitorRecord", item_id)

        item = items[0]
        columns = {col["id"]: col.get("text") for col in item.get("column_values", [])}

        notifications = []
        for update in item.get("updates") or []:
            match = _NOTIFICATION_RE.match(update.get("body") or "")
            if match:
                notifications.append(
                    NotificationEntry(
                        type=match.group("type"),
                        status=match.group("status"),
                        message_id=match.group("message_id"),
                        timestamp=update.get("created_at") or utc_now(),
                    )
                )

        files = [
            UploadedFile(id=str(asset["id"]), filename=asset.get("name", ""), column_id="", url=asset.get("public_url"))
            for asset in item.get("assets") or []
        ]

        return ItemStatus(
            status=columns.get("status"),
            notifications=notifications,
            files=files,
            last_updated=item.get("updated_at"),
        )

    async def find_visitor_by_email(self, email: str) -> CreatedRecord | None:
        data = await self.query(
            FIND_BY_EMAIL_QUERY,
            {"board_id": self.settings.visitors_board_id, "email": email.lower()},
        )
        items = (data.get("items_page_by_column_values") or {}).get("items") or []
        if not items:
            return None
        return CreatedRecord(id=str(items[0]["id"]), name=items[0]["name"])

    async def get_staff_directory(self) -> list[StaffMember]:
        """Active staff members, cached for ten minutes."""
        return await self.cache.get_or_load(
            STAFF_CACHE_KEY,
            self._load_staff_directory,
            ttl_minutes=STAFF_CACHE_TTL_MINUTES,
        )

    async def _load_staff_directory(self) -> list[StaffMember]:
        data = await self.query(STAFF_QUERY, {"board_id": self.settings.staff_board_id})
        boards = data.get("boards") or []
        items = boards[0]["items_page"]["items"] if boards else []

        staff = []
        for item in items:
            by_title = {
                (col.get("column") or {}).get("title"): col.get("text") or ""
                for col in item.get("column_values", [])
            }
            staff.append(
                StaffMember(
                    id=str(item["id"]),
                    name=by_title.get("Employee") or item["name"],
                    email=by_title.get("Email", ""),
                    job_title=by_title.get("Job Title") or None,
                    google_chat=by_title.get("Google Chat") or None,
                    is_active=by_title.get("Status") == "Active",
                )
            )

        self.logger.info("Staff directory loaded", count=len(staff))
        return [member for member in staff if member.is_active]

    async def test_connection(self) -> dict[str, Any]:
        if not self.settings.api_key:
            return {"success": False, "error": "No API key configured"}

        try:
            data = await self.query("query { me { id name email } }")
        except KioskError as e:
            self.logger.warning("Monday.com connection failed", error=str(e))
            return {"success": False, "error": str(e)}

        if not data.get("me"):
            return {"success": False, "error": "Invalid API response"}
        return {"success": True, "user": data["me"]}
