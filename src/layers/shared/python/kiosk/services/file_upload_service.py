"""Visitor photo and signature uploads to the record store."""

import asyncio
from typing import Any

import structlog
from pydantic import Field

from kiosk.execution.service_recovery import ServiceRecovery
from kiosk.models.base import BaseModel
from kiosk.models.registration import VisitorRegistration
from kiosk.models.visitor import UploadedFile, VisitorRecord
from kiosk.services.record_store import PHOTO_COLUMN, SIGNATURE_COLUMN, RecordStore
from kiosk.utils.exceptions import FileValidationError
from kiosk.utils.files import (
    VisitorFile,
    compress_image,
    data_url_to_bytes,
    generate_file_name,
    validate_image_file,
)

logger = structlog.get_logger()

PHOTO_MAX_WIDTH = 800
PHOTO_QUALITY = 0.85


class FileUploadResult(BaseModel):
    """Outcome of uploading a visitor's files."""

    success: bool = False
    item_id: str | None = None
    uploaded_files: dict[str, UploadedFile] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)


class FileUploadService:
    """Validates, compresses and uploads a visitor's photo and signature.

    Creates the visitor record first when no record id is given. Every
    record store call goes through the ``monday`` recovery policy.
    """

    def __init__(self, record_store: RecordStore, recovery: ServiceRecovery):
        self.record_store = record_store
        self.recovery = recovery
        self.logger = logger.bind(service="file_upload_service")

    async def upload_visitor_files(
        self,
        registration: VisitorRegistration,
        item_id: str | None = None,
    ) -> FileUploadResult:
        """Upload the registration's photo and signature.

        Args:
            registration: Completed registration.
            item_id: Existing record id; a record is created when omitted.

        Returns:
            FileUploadResult. ``success`` is true when at least one file
            uploaded. Without any files there is nothing to report and
            ``errors`` stays empty.
        """
        result = FileUploadResult()

        files = self._prepare_files(registration, result.errors)
        validated = self._validate_and_optimize(files, result.errors)

        if item_id is None:
            record = VisitorRecord.from_registration(registration)
            try:
                created = await self.recovery.execute_monday_service(
                    lambda: self.record_store.create_visitor_record(record)
                )
            except Exception as e:
                self.logger.error("Failed to create visitor record", error=str(e))
                result.errors.append(f"Failed to create visitor record: {e}")
                return result
            item_id = created.id

        result.item_id = item_id

        if not validated:
            self.logger.info("No files to upload", item_id=item_id)
            return result

        kinds = list(validated)
        outcomes = await asyncio.gather(
            *(self._upload(item_id, validated[kind]) for kind in kinds),
            return_exceptions=True,
        )

        for kind, outcome in zip(kinds, outcomes):
            if isinstance(outcome, BaseException):
                result.errors.append(f"Failed to upload {kind}: {outcome}")
            else:
                result.uploaded_files[kind] = outcome

        result.success = bool(result.uploaded_files)

        self.logger.info(
            "Visitor files uploaded",
            item_id=item_id,
            uploaded=list(result.uploaded_files),
            error_count=len(result.errors),
        )
        return result

    async def _upload(self, item_id: str, file: VisitorFile) -> UploadedFile:
        return await self.recovery.execute_monday_service(
            lambda: self.record_store.upload_file(item_id, file.column_id, file)
        )

    def _prepare_files(
        self,
        registration: VisitorRegistration,
        errors: list[str],
    ) -> dict[str, VisitorFile]:
        """Build in-memory files for the photo and signature."""
        prefix = f"{registration.first_name}_{registration.last_name}"
        files: dict[str, VisitorFile] = {}

        if registration.photo_blob:
            files["photo"] = VisitorFile(
                content=registration.photo_blob,
                filename=generate_file_name(f"{prefix}_photo", "jpg"),
                content_type="image/jpeg",
                column_id=PHOTO_COLUMN,
            )

        signature = registration.signature_blob
        if not signature and registration.signature:
            try:
                signature, _ = data_url_to_bytes(registration.signature)
            except ValueError as e:
                self.logger.warning("Failed to decode signature data URL", error=str(e))
                errors.append(f"Signature could not be read: {e}")

        if signature:
            files["signature"] = VisitorFile(
                content=signature,
                filename=generate_file_name(f"{prefix}_signature", "png"),
                content_type="image/png",
                column_id=SIGNATURE_COLUMN,
            )

        return files

    def _validate_and_optimize(
        self,
        files: dict[str, VisitorFile],
        errors: list[str],
    ) -> dict[str, VisitorFile]:
        """Validate files and compress the photo; failures go to errors."""
        validated: dict[str, VisitorFile] = {}

        for kind, file in files.items():
            try:
                validate_image_file(file)
            except FileValidationError as e:
                errors.append(f"{kind.capitalize()} validation failed: {e.message}")
                continue

            if kind == "photo":
                try:
                    file = compress_image(file, max_width=PHOTO_MAX_WIDTH, quality=PHOTO_QUALITY)
                except FileValidationError as e:
                    errors.append(f"Failed to optimize photo: {e.message}")
                    continue

            validated[kind] = file

        return validated

    async def update_visitor_with_file_urls(
        self,
        item_id: str,
        photo_url: str | None = None,
        signature_url: str | None = None,
    ) -> None:
        """Write file URLs back onto the record. No call when both are empty."""
        column_values: dict[str, Any] = {}
        if photo_url:
            column_values["photo_url"] = photo_url
        if signature_url:
            column_values["signature_url"] = signature_url

        if not column_values:
            return

        await self.recovery.execute_monday_service(
            lambda: self.record_store.update_item(item_id, column_values)
        )

    async def get_file_metadata(self, item_id: str) -> dict[str, list[UploadedFile]]:
        """Photos and signatures attached to a record; empty on error."""
        try:
            status = await self.recovery.execute_monday_service(
                lambda: self.record_store.get_item_status(item_id)
            )
        except Exception as e:
            self.logger.error("Failed to get file metadata", item_id=item_id, error=str(e))
            return {"photos": [], "signatures": []}

        photos = [f for f in status.files if f.column_id == PHOTO_COLUMN or "_photo" in f.filename]
        signatures = [f for f in status.files if f.column_id == SIGNATURE_COLUMN or "_signature" in f.filename]
        return {"photos": photos, "signatures": signatures}
