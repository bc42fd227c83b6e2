"""Notification pipeline run after a visitor signs the NDA.

Six ordered steps, each retried independently:

    file-upload → monday-status → host-email → welcome-email
        → chat-notification → final-status

Each step moves pending → processing → (retrying →)* completed | failed.
A progress callback receives a copy of the step at every transition.
Failed steps can be re-run later without repeating the completed ones.
"""

import asyncio
from typing import Any, Awaitable, Callable

import structlog

from kiosk.config import PipelineConfig
from kiosk.execution.error_classifier import classify_error
from kiosk.execution.service_recovery import ServiceRecovery
from kiosk.models.base import utc_now
from kiosk.models.pipeline import (
    NotificationPipelineResult,
    NotificationStep,
    SendResult,
    StepStatus,
    summarize_steps,
)
from kiosk.models.registration import VisitorRegistration
from kiosk.models.visitor import NotificationKind, NotificationOutcome
from kiosk.services.chat_service import ChatService
from kiosk.services.email_service import EmailService, WelcomePackageOptions
from kiosk.services.file_upload_service import FileUploadService
from kiosk.services.record_store import RecordStore
from kiosk.services.templates import HostNotificationData
from kiosk.utils.exceptions import ExternalServiceError, OperationTimeoutError, ValidationError

logger = structlog.get_logger()

StepCallback = Callable[[NotificationStep], None]
StepOperation = Callable[[VisitorRegistration, NotificationPipelineResult], Awaitable[Any]]

PIPELINE_STEPS: list[tuple[str, str]] = [
    ("file-upload", "Upload files to Monday.com"),
    ("monday-status", "Update visitor status in Monday.com"),
    ("host-email", "Send host notification email"),
    ("welcome-email", "Send welcome package email"),
    ("chat-notification", "Send Google Chat notification"),
    ("final-status", "Update final processing status"),
]


class NotificationPipeline:
    """Runs the visitor notification steps against injected collaborators.

    Example:
        pipeline = NotificationPipeline(store, email, chat, recovery)
        result = await pipeline.process_visitor_registration(registration, on_step_update=print)
        if result.failed_steps:
            result = await pipeline.retry_failed_steps(result, registration)
    """

    def __init__(
        self,
        record_store: RecordStore,
        email_service: EmailService,
        chat_service: ChatService,
        recovery: ServiceRecovery,
        file_upload_service: FileUploadService | None = None,
        config: PipelineConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.record_store = record_store
        self.email_service = email_service
        self.chat_service = chat_service
        self.recovery = recovery
        self.file_upload_service = file_upload_service or FileUploadService(record_store, recovery)
        self.config = config or PipelineConfig()
        self._sleep = sleep
        self.logger = logger.bind(service="notification_pipeline")

        # Used by both full runs and selective retries
        self._step_operations: dict[str, StepOperation] = {
            "file-upload": self._upload_files,
            "monday-status": self._update_monday_status,
            "host-email": self._send_host_email,
            "welcome-email": self._send_welcome_email,
            "chat-notification": self._send_chat_notification,
            "final-status": self._update_final_status,
        }

    @property
    def max_attempts(self) -> int:
        return self.config.max_retries + 1

    def create_steps(self) -> list[NotificationStep]:
        """Fresh pending steps in execution order."""
        return [
            NotificationStep(id=step_id, name=name, max_attempts=self.max_attempts)
            for step_id, name in PIPELINE_STEPS
        ]

    async def process_visitor_registration(
        self,
        registration: VisitorRegistration,
        on_step_update: StepCallback | None = None,
    ) -> NotificationPipelineResult:
        """Run every step for a registration.

        Returns:
            The aggregate result. A run aborted by a failed step (only when
            continue_on_failure is off) still returns its result.
        """
        steps = self.create_steps()
        result = NotificationPipelineResult(
            success=False,
            total_steps=len(steps),
            completed_steps=0,
            failed_steps=0,
            steps=steps,
        )

        log = self.logger.bind(visitor_email=registration.email, host_id=registration.host_id)
        log.info("Notification pipeline started", total_steps=len(steps))

        try:
            for step in steps:
                await self._run_step(step, registration, result, on_step_update)
        except Exception as e:
            log.error("Pipeline execution aborted", error=str(e))

        self._finalize(result)

        log.info(
            "Notification pipeline finished",
            success=result.success,
            completed_steps=result.completed_steps,
            failed_steps=result.failed_steps,
            record_id=result.monday_record_id,
        )
        return result

    async def retry_failed_steps(
        self,
        previous_result: NotificationPipelineResult,
        registration: VisitorRegistration,
        on_step_update: StepCallback | None = None,
    ) -> NotificationPipelineResult:
        """Re-run only the failed steps of a previous result.

        Works on a copy of previous_result. Completed steps are left as they
        were and the record id and URL of the earlier run are reused.

        Raises:
            ValidationError: If previous_result holds a step id this pipeline
                does not run. Nothing is retried in that case.
        """
        result = previous_result.model_copy(deep=True)
        self._check_step_ids(result.steps)

        failed = [step for step in result.steps if step.status == StepStatus.FAILED]

        self.logger.info(
            "Retrying failed steps",
            step_ids=[step.id for step in failed],
            record_id=result.monday_record_id,
        )

        try:
            for step in failed:
                step.reset()
                step.max_attempts = self.max_attempts
                await self._run_step(step, registration, result, on_step_update)
        except Exception as e:
            self.logger.error("Retry pass aborted", error=str(e))

        self._finalize(result)
        return result

    def _check_step_ids(self, steps: list[NotificationStep]) -> None:
        unknown = [step.id for step in steps if step.id not in self._step_operations]
        if unknown:
            raise ValidationError(
                "Unknown pipeline steps",
                errors=[{"field": f"steps.{step_id}", "message": "Unknown step id"} for step_id in unknown],
            )

    async def _run_step(
        self,
        step: NotificationStep,
        registration: VisitorRegistration,
        result: NotificationPipelineResult,
        on_update: StepCallback | None,
    ) -> None:
        operation = self._step_operations[step.id]
        await self.execute_step(step, lambda: operation(registration, result), on_update)

    async def execute_step(
        self,
        step: NotificationStep,
        operation: Callable[[], Awaitable[Any]],
        on_update: StepCallback | None = None,
    ) -> None:
        """Run a step's operation with per-attempt timeout and retries.

        Raises:
            Exception: The last error, when the step fails and
                continue_on_failure is off.
        """
        while step.attempts < step.max_attempts:
            step.attempts += 1
            step.status = StepStatus.RETRYING if step.attempts > 1 else StepStatus.PROCESSING
            step.start_time = utc_now()
            self._notify(step, on_update)

            try:
                value = await self._with_timeout(operation)
            except Exception as e:
                step.error = str(e)
                self._stamp_end(step)

                classification = classify_error(e)
                self.logger.warning(
                    "Step attempt failed",
                    step_id=step.id,
                    attempt=step.attempts,
                    max_attempts=step.max_attempts,
                    error=step.error,
                    error_type=classification.type,
                    recoverable=classification.recoverable,
                )

                if step.attempts < step.max_attempts:
                    await self._sleep(self.config.retry_delay)
                    continue

                step.status = StepStatus.FAILED
                self._notify(step, on_update)
                self.logger.error("Step failed", step_id=step.id, attempts=step.attempts, error=step.error)

                if not self.config.continue_on_failure:
                    raise
                return

            step.result = value
            step.status = StepStatus.COMPLETED
            step.error = None
            self._stamp_end(step)
            self._notify(step, on_update)
            self.logger.info(
                "Step completed",
                step_id=step.id,
                attempts=step.attempts,
                duration_ms=step.duration_ms,
            )
            return

    async def _with_timeout(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await asyncio.wait_for(operation(), timeout=self.config.timeout)
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError("Operation timeout", timeout=self.config.timeout) from e

    @staticmethod
    def _stamp_end(step: NotificationStep) -> None:
        step.end_time = utc_now()
        if step.start_time is not None:
            step.duration_ms = int((step.end_time - step.start_time).total_seconds() * 1000)

    def _notify(self, step: NotificationStep, on_update: StepCallback | None) -> None:
        if on_update is not None:
            on_update(step.snapshot())

    def _finalize(self, result: NotificationPipelineResult) -> None:
        """Recount step outcomes and derive success."""
        result.completed_steps = sum(1 for s in result.steps if s.status == StepStatus.COMPLETED)
        result.failed_steps = sum(1 for s in result.steps if s.status == StepStatus.FAILED)
        result.success = result.failed_steps == 0 or (
            self.config.continue_on_failure and result.completed_steps > 0
        )

    def get_step_status_summary(self, steps: list[NotificationStep]) -> dict[str, int]:
        return summarize_steps(steps)

    # Step operations

    async def _upload_files(
        self,
        registration: VisitorRegistration,
        result: NotificationPipelineResult,
    ) -> dict[str, Any]:
        upload = await self.file_upload_service.upload_visitor_files(
            registration,
            item_id=result.monday_record_id,
        )

        if upload.item_id:
            result.monday_record_id = upload.item_id
            result.monday_record_url = self.record_store.record_url(upload.item_id)

        if not upload.success and upload.errors:
            raise ExternalServiceError("monday", f"File upload failed: {', '.join(upload.errors)}")

        return upload.model_dump(mode="json")

    async def _update_monday_status(
        self,
        registration: VisitorRegistration,
        result: NotificationPipelineResult,
    ) -> dict[str, Any]:
        item_id = result.monday_record_id
        if not item_id:
            return {"success": True, "message": "No Monday record to update"}

        column_values = {
            "status": "Registration Complete",
            "processing_status": "Processing Notifications",
            "last_updated": utc_now().isoformat(),
        }
        await self.recovery.execute_monday_service(
            lambda: self.record_store.update_item(item_id, column_values)
        )
        return {"success": True, "item_id": item_id}

    async def _send_host_email(
        self,
        registration: VisitorRegistration,
        result: NotificationPipelineResult,
    ) -> dict[str, Any]:
        send = await self.email_service.send_host_notification(
            HostNotificationData(
                host_name=registration.host_name,
                host_email=registration.host_email,
                visitor_name=registration.full_name,
                visitor_email=registration.email,
                visitor_company=registration.company_name,
                visit_time=utc_now().strftime("%Y-%m-%d %H:%M UTC"),
                record_url=result.monday_record_url,
            )
        )
        return await self._check_send("email", send, result, "Host notification failed")

    async def _send_welcome_email(
        self,
        registration: VisitorRegistration,
        result: NotificationPipelineResult,
    ) -> dict[str, Any]:
        send = await self.email_service.send_welcome_package(
            registration,
            WelcomePackageOptions(
                include_pdf=bool(registration.pdf_blob),
                include_studio_map=True,
                include_wifi_info=True,
            ),
        )
        return await self._check_send("email", send, result, "Welcome email failed")

    async def _send_chat_notification(
        self,
        registration: VisitorRegistration,
        result: NotificationPipelineResult,
    ) -> dict[str, Any]:
        send = await self.chat_service.notify_team_of_visitor(registration, result.monday_record_url)
        return await self._check_send("chat", send, result, "Chat notification failed")

    async def _update_final_status(
        self,
        registration: VisitorRegistration,
        result: NotificationPipelineResult,
    ) -> dict[str, Any]:
        item_id = result.monday_record_id
        if not item_id:
            return {"success": True, "message": "Final status updated"}

        completed = sum(1 for s in result.steps if s.status == StepStatus.COMPLETED)
        failed = sum(1 for s in result.steps if s.status == StepStatus.FAILED)
        column_values = {
            "processing_status": f"Complete ({completed}/{result.total_steps} steps successful)",
            "notification_status": "Some Failed" if failed > 0 else "All Sent",
            "completed_at": utc_now().isoformat(),
        }
        await self.recovery.execute_monday_service(
            lambda: self.record_store.update_item(item_id, column_values)
        )
        return {"success": True, "item_id": item_id, **column_values}

    async def _check_send(
        self,
        kind: str,
        send: SendResult,
        result: NotificationPipelineResult,
        failure_message: str,
    ) -> dict[str, Any]:
        """Track a send's outcome on the record, then fail the attempt if the send failed."""
        await self._track_notification(result.monday_record_id, kind, send)

        if not send.success:
            raise ExternalServiceError(kind, f"{failure_message}: {send.error or 'unknown error'}")

        return send.model_dump(mode="json")

    async def _track_notification(self, item_id: str | None, kind: str, send: SendResult) -> None:
        """Best effort: a tracking failure is logged and never fails the step."""
        if not item_id:
            return

        outcome = NotificationOutcome.SENT if send.success else NotificationOutcome.FAILED
        try:
            await self.recovery.execute_monday_service(
                lambda: self.record_store.track_notification_status(
                    item_id,
                    NotificationKind(kind),
                    outcome,
                    send.message_id,
                )
            )
        except Exception as e:
            self.logger.warning(
                "Failed to track notification status",
                item_id=item_id,
                kind=kind,
                error=str(e),
            )
