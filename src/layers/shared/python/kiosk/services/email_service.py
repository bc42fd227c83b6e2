"""Email integration service using Amazon SES.

Sends the host arrival notification and the visitor welcome package.
Every send goes through the ``email`` recovery policy; the final outcome is
reported as a SendResult rather than raised.
"""

import asyncio
from dataclasses import dataclass
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from kiosk.config import EmailSettings, StudioSettings
from kiosk.execution.circuit_breaker import CircuitBreakerError
from kiosk.execution.service_recovery import ServiceRecovery
from kiosk.models.base import generate_ulid, utc_now
from kiosk.models.pipeline import SendResult
from kiosk.models.registration import VisitorRegistration
from kiosk.services.templates import (
    EmailTemplate,
    HostNotificationData,
    WelcomeEmailData,
    host_notification_template,
    studio_map_pdf,
    welcome_email_template,
    wifi_info_pdf,
)

logger = structlog.get_logger()


class EmailError(Exception):
    """Custom exception for email-related errors."""

    def __init__(self, message: str, code: str | None = None, details: dict | None = None):
        """Initialize EmailError.

        Args:
            message: Error message.
            code: Error code.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


@dataclass
class EmailAttachment:
    """A file attached to an email."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass
class WelcomePackageOptions:
    """Which documents to attach to the welcome email."""

    include_pdf: bool = True
    include_studio_map: bool = True
    include_wifi_info: bool = True


class EmailService:
    """Service for sending visitor emails via Amazon SES.

    Uses SES ``send_email`` for plain messages and ``send_raw_email`` with a
    MIME body when there are attachments. boto3 calls run in a worker thread.
    """

    def __init__(
        self,
        settings: EmailSettings | None = None,
        studio: StudioSettings | None = None,
        recovery: ServiceRecovery | None = None,
        client: Any = None,
    ):
        """Initialize Email service.

        Args:
            settings: Sender and SES settings.
            studio: Studio details for templates.
            recovery: Recovery facade used for every send.
            client: Optional pre-built SES client.
        """
        self.settings = settings or EmailSettings()
        self.studio = studio or StudioSettings()
        self.recovery = recovery
        self._client = client
        self.logger = logger.bind(service="email_service")

    @property
    def client(self):
        """Get SES client (lazy initialization)."""
        if self._client is None:
            self._client = boto3.client("ses", region_name=self.settings.region)
        return self._client

    @property
    def source(self) -> str:
        if not self.settings.from_email:
            raise EmailError("Sender email address is required", code="SENDER_MISSING")
        return f"{self.settings.from_name} <{self.settings.from_email}>"

    async def send_email(
        self,
        to: str | list[str],
        template: EmailTemplate,
        attachments: list[EmailAttachment] | None = None,
    ) -> SendResult:
        """Send an email through the recovery policy.

        Returns:
            SendResult; failures after retries are reported, not raised.
        """
        recipients = [to] if isinstance(to, str) else list(to)
        if not recipients:
            return SendResult(success=False, error="Recipient email address is required")

        async def _send() -> str:
            return await self._deliver(recipients, template, attachments or [])

        try:
            if self.recovery is not None:
                message_id = await self.recovery.execute_email_service(_send)
            else:
                message_id = await _send()
        except (EmailError, CircuitBreakerError) as e:
            self.logger.error(
                "Email send failed",
                to=recipients,
                subject=template.subject,
                error=str(e),
            )
            return SendResult(success=False, error=str(e))

        self.logger.info("Email sent successfully", message_id=message_id, to=recipients)
        return SendResult(success=True, message_id=message_id)

    async def _deliver(
        self,
        to: list[str],
        template: EmailTemplate,
        attachments: list[EmailAttachment],
    ) -> str:
        """Hand the message to the provider and return its message id."""
        return await asyncio.to_thread(self._send_via_ses, to, template, attachments)

    def _send_via_ses(
        self,
        to: list[str],
        template: EmailTemplate,
        attachments: list[EmailAttachment],
    ) -> str:
        self.logger.info(
            "Sending email",
            to=to,
            subject=template.subject[:50] + "..." if len(template.subject) > 50 else template.subject,
            has_attachments=bool(attachments),
        )

        try:
            if attachments:
                response = self.client.send_raw_email(**self._raw_request(to, template, attachments))
            else:
                response = self.client.send_email(**self._simple_request(to, template))
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            error_message = e.response["Error"]["Message"]

            self.logger.error(
                "SES send failed",
                error_code=error_code,
                error_message=error_message,
                to=to,
            )

            raise EmailError(
                f"Failed to send email: {error_message}",
                code=error_code,
                details={"aws_error": error_message},
            ) from e
        except BotoCoreError as e:
            raise EmailError(f"Failed to send email: {e}", code="BOTOCORE_ERROR") from e

        return response["MessageId"]

    def _simple_request(self, to: list[str], template: EmailTemplate) -> dict[str, Any]:
        body: dict[str, Any] = {"Html": {"Data": template.html, "Charset": "UTF-8"}}
        if template.text:
            body["Text"] = {"Data": template.text, "Charset": "UTF-8"}

        kwargs: dict[str, Any] = {
            "Source": self.source,
            "Destination": {"ToAddresses": to},
            "Message": {
                "Subject": {"Data": template.subject, "Charset": "UTF-8"},
                "Body": body,
            },
        }
        if self.settings.configuration_set:
            kwargs["ConfigurationSetName"] = self.settings.configuration_set
        return kwargs

    def _raw_request(
        self,
        to: list[str],
        template: EmailTemplate,
        attachments: list[EmailAttachment],
    ) -> dict[str, Any]:
        msg = MIMEMultipart("mixed")
        msg["Subject"] = template.subject
        msg["From"] = self.source
        msg["To"] = ", ".join(to)

        body_part = MIMEMultipart("alternative")
        if template.text:
            body_part.attach(MIMEText(template.text, "plain", "utf-8"))
        body_part.attach(MIMEText(template.html, "html", "utf-8"))
        msg.attach(body_part)

        for attachment in attachments:
            _, _, subtype = attachment.content_type.partition("/")
            part = MIMEApplication(attachment.content, _subtype=subtype or "octet-stream")
            part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
            msg.attach(part)

        kwargs: dict[str, Any] = {
            "Source": self.source,
            "Destinations": to,
            "RawMessage": {"Data": msg.as_string()},
        }
        if self.settings.configuration_set:
            kwargs["ConfigurationSetName"] = self.settings.configuration_set
        return kwargs

    async def send_host_notification(self, data: HostNotificationData) -> SendResult:
        """Tell the host their visitor has arrived."""
        template = host_notification_template(data, studio_name=self.studio.name)
        return await self.send_email(data.host_email, template)

    async def send_welcome_package(
        self,
        registration: VisitorRegistration,
        options: WelcomePackageOptions | None = None,
    ) -> SendResult:
        """Send the welcome email with the requested documents attached."""
        options = options or WelcomePackageOptions()

        data = WelcomeEmailData(
            visitor_name=registration.full_name,
            visitor_email=registration.email,
            host_name=registration.host_name,
            visit_date=utc_now().strftime("%Y-%m-%d"),
            studio=self.studio,
        )

        attachments: list[EmailAttachment] = []
        if options.include_pdf and registration.pdf_blob:
            attachments.append(
                EmailAttachment(
                    filename=registration.pdf_filename or "NDA_Document.pdf",
                    content=registration.pdf_blob,
                    content_type="application/pdf",
                )
            )
        if options.include_studio_map:
            attachments.append(
                EmailAttachment("SQLA_Studio_Map.pdf", studio_map_pdf(self.studio), "application/pdf")
            )
        if options.include_wifi_info:
            attachments.append(
                EmailAttachment("WiFi_and_Access_Info.pdf", wifi_info_pdf(self.studio), "application/pdf")
            )

        return await self.send_email(registration.email, welcome_email_template(data), attachments)


class MockEmailService(EmailService):
    """Logs emails instead of sending them. Used in development."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.sent: list[dict[str, Any]] = []

    async def _deliver(
        self,
        to: list[str],
        template: EmailTemplate,
        attachments: list[EmailAttachment],
    ) -> str:
        message_id = f"mock-{generate_ulid()}"
        self.sent.append(
            {
                "message_id": message_id,
                "to": to,
                "subject": template.subject,
                "attachments": [a.filename for a in attachments],
            }
        )
        self.logger.info(
            "Mock email sent",
            to=to,
            subject=template.subject,
            attachments=[a.filename for a in attachments],
        )
        return message_id
