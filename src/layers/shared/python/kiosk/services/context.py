"""Process-wide service context.

Collaborators are chosen once, from settings, when the context is built.
Mock implementations are used when mocks are forced, or in the dev stage
when a service's credential is missing.
"""

from dataclasses import dataclass

import structlog

from kiosk.config import KioskSettings, load_settings
from kiosk.execution.service_recovery import ServiceRecovery
from kiosk.services.chat_service import ChatService, MockChatService
from kiosk.services.email_service import EmailService, MockEmailService
from kiosk.services.file_upload_service import FileUploadService
from kiosk.services.monday_service import MondayRecordStore
from kiosk.services.notification_pipeline import NotificationPipeline
from kiosk.services.record_store import InMemoryRecordStore, RecordStore

logger = structlog.get_logger()


@dataclass
class ServiceContext:
    """Collaborators shared by every pipeline run in the process."""

    settings: KioskSettings
    recovery: ServiceRecovery
    record_store: RecordStore
    email_service: EmailService
    chat_service: ChatService
    file_upload_service: FileUploadService
    pipeline: NotificationPipeline


def _use_mock(settings: KioskSettings, credential: str | None) -> bool:
    return settings.use_mock_services or (settings.is_dev and not credential)


def build_service_context(
    settings: KioskSettings | None = None,
    recovery: ServiceRecovery | None = None,
) -> ServiceContext:
    """Build the collaborators for this process.

    Args:
        settings: Configuration; read from the environment when omitted.
        recovery: Shared recovery facade; a default one is created when omitted.
    """
    settings = settings or load_settings()
    recovery = recovery or ServiceRecovery()

    record_store: RecordStore
    if _use_mock(settings, settings.monday.api_key):
        record_store = InMemoryRecordStore(
            account_slug=settings.monday.account_slug,
            visitors_board_id=settings.monday.visitors_board_id,
        )
    else:
        record_store = MondayRecordStore(settings.monday)

    email_cls = MockEmailService if _use_mock(settings, settings.email.from_email) else EmailService
    email_service = email_cls(settings=settings.email, studio=settings.studio, recovery=recovery)

    chat_cls = MockChatService if _use_mock(settings, settings.chat_webhook_url) else ChatService
    chat_service = chat_cls(
        webhook_url=settings.chat_webhook_url,
        recovery=recovery,
        studio_name=settings.studio.name,
    )

    file_upload_service = FileUploadService(record_store, recovery)
    pipeline = NotificationPipeline(
        record_store=record_store,
        email_service=email_service,
        chat_service=chat_service,
        recovery=recovery,
        file_upload_service=file_upload_service,
        config=settings.pipeline_config(),
    )

    logger.info(
        "Service context built",
        stage=settings.stage,
        record_store=type(record_store).__name__,
        email_service=type(email_service).__name__,
        chat_service=type(chat_service).__name__,
    )

    return ServiceContext(
        settings=settings,
        recovery=recovery,
        record_store=record_store,
        email_service=email_service,
        chat_service=chat_service,
        file_upload_service=file_upload_service,
        pipeline=pipeline,
    )
