"""Google Chat webhook notifications."""

import json
from typing import Any

import httpx
import structlog

from kiosk.execution.circuit_breaker import CircuitBreakerError
from kiosk.execution.retry_policy import NETWORK_TIMEOUT_SECONDS, request_once
from kiosk.execution.service_recovery import ServiceRecovery
from kiosk.models.base import generate_ulid, utc_now
from kiosk.models.pipeline import SendResult
from kiosk.models.registration import VisitorRegistration
from kiosk.services import templates
from kiosk.utils.exceptions import KioskError

logger = structlog.get_logger()


class ChatService:
    """Posts card messages to a Google Chat incoming webhook.

    Sends go through the ``chat`` recovery policy. Webhook errors are not
    retried by that policy, network failures are.
    """

    def __init__(
        self,
        webhook_url: str | None = None,
        recovery: ServiceRecovery | None = None,
        studio_name: str = "SQLA Studio",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.webhook_url = webhook_url
        self.recovery = recovery
        self.studio_name = studio_name
        self._transport = transport
        self.logger = logger.bind(service="chat_service")

    async def send_message(self, message: dict[str, Any]) -> SendResult:
        """Send a chat message.

        Returns:
            SendResult; failures after retries are reported, not raised.
        """

        async def _send() -> str:
            return await self._post(message)

        try:
            if self.recovery is not None:
                message_id = await self.recovery.execute_chat_service(_send)
            else:
                message_id = await _send()
        except (KioskError, CircuitBreakerError) as e:
            self.logger.error("Chat message failed", error=str(e))
            return SendResult(success=False, error=str(e))

        self.logger.info("Chat message sent", message_id=message_id)
        return SendResult(success=True, message_id=message_id)

    async def _post(self, message: dict[str, Any]) -> str:
        if not self.webhook_url:
            raise KioskError("Google Chat webhook URL is not configured", error_code="CHAT_NOT_CONFIGURED")

        response = await request_once(
            self.webhook_url,
            method="POST",
            timeout=NETWORK_TIMEOUT_SECONDS,
            service="google_chat",
            transport=self._transport,
            error_prefix="Google Chat webhook error",
            json=message,
        )

        try:
            body = response.json()
        except json.JSONDecodeError:
            body = {}
        return body.get("name") or f"chat-{generate_ulid()}"

    async def notify_visitor_arrival(self, data: templates.VisitorNotificationData) -> SendResult:
        return await self.send_message(templates.visitor_arrival_message(data, self.studio_name))

    async def notify_visitor_completed(self, data: templates.VisitorNotificationData) -> SendResult:
        return await self.send_message(templates.visitor_completed_message(data))

    async def notify_team_of_visitor(
        self,
        registration: VisitorRegistration,
        record_url: str | None = None,
    ) -> SendResult:
        """Announce a completed registration to the team space."""
        data = templates.VisitorNotificationData(
            visitor_name=registration.full_name,
            visitor_email=registration.email,
            visitor_company=registration.company_name,
            host_name=registration.host_name,
            host_email=registration.host_email,
            arrival_time=utc_now().strftime("%Y-%m-%d %H:%M UTC"),
            record_url=record_url,
            photo_url=registration.photo_url,
        )
        return await self.notify_visitor_completed(data)

    async def send_custom_message(
        self,
        title: str,
        content: str,
        action_url: str | None = None,
        action_text: str | None = None,
    ) -> SendResult:
        return await self.send_message(templates.custom_message(title, content, action_url, action_text))


class MockChatService(ChatService):
    """Logs chat messages instead of posting them. Used in development."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.sent: list[dict[str, Any]] = []

    async def _post(self, message: dict[str, Any]) -> str:
        message_id = f"mock-chat-{generate_ulid()}"
        self.sent.append({"message_id": message_id, "message": message})
        self.logger.info("Mock chat message sent", text=message.get("text"))
        return message_id
