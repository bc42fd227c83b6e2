"""Service layer for the visitor kiosk."""

from kiosk.services.chat_service import ChatService, MockChatService
from kiosk.services.context import ServiceContext, build_service_context
from kiosk.services.email_service import (
    EmailAttachment,
    EmailError,
    EmailService,
    MockEmailService,
    WelcomePackageOptions,
)
from kiosk.services.file_upload_service import FileUploadResult, FileUploadService
from kiosk.services.monday_service import MondayRecordStore
from kiosk.services.notification_pipeline import PIPELINE_STEPS, NotificationPipeline
from kiosk.services.record_store import InMemoryRecordStore, RecordStore

__all__ = [
    "ChatService",
    "EmailAttachment",
    "EmailError",
    "EmailService",
    "FileUploadResult",
    "FileUploadService",
    "InMemoryRecordStore",
    "MockChatService",
    "MockEmailService",
    "MondayRecordStore",
    "NotificationPipeline",
    "PIPELINE_STEPS",
    "RecordStore",
    "ServiceContext",
    "WelcomePackageOptions",
    "build_service_context",
]
