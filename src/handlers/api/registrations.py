"""Visitor registrations API handler (kiosk)."""

import asyncio
import json
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from kiosk.execution.error_classifier import create_user_friendly_error
from kiosk.models.pipeline import NotificationPipelineResult
from kiosk.models.registration import VisitorRegistration
from kiosk.services.context import ServiceContext, build_service_context
from kiosk.utils.exceptions import KioskError, ValidationError
from kiosk.utils.responses import (
    classified_error,
    from_exception,
    method_not_allowed,
    pipeline_result,
    success,
    validation_error,
)

logger = structlog.get_logger()

_context: ServiceContext | None = None


def get_context() -> ServiceContext:
    """Service context, built on first use and kept for the container's lifetime."""
    global _context
    if _context is None:
        _context = build_service_context()
    return _context


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle registration API requests.

    Routes:
        POST /registrations
        POST /registrations/retry
        GET  /registrations/health
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "")

        if http_method == "GET" and path.endswith("/health"):
            return get_health(get_context())
        elif http_method == "POST" and path.endswith("/retry"):
            return retry_registration(get_context(), event)
        elif http_method == "POST":
            return create_registration(get_context(), event)
        else:
            return method_not_allowed(["GET", "POST"])

    except ValidationError as e:
        return validation_error(e.errors)
    except KioskError as e:
        logger.warning("Registration request failed", error=e.message, error_code=e.error_code)
        return from_exception(e)
    except Exception as e:
        logger.exception("Registrations handler error", error=str(e))
        return classified_error(create_user_friendly_error(e))


def _parse_body(event: dict) -> dict:
    try:
        body = json.loads(event.get("body") or "{}")
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON body", error=str(e))
        raise ValidationError("Invalid JSON body", errors=[{"field": "body", "message": "Invalid JSON"}]) from e

    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON body", errors=[{"field": "body", "message": "Expected an object"}])
    return body


def _parse_registration(payload: Any) -> VisitorRegistration:
    if not isinstance(payload, dict):
        raise ValidationError(errors=[{"field": "registration", "message": "Expected an object"}])
    try:
        return VisitorRegistration.from_payload(payload)
    except PydanticValidationError as e:
        logger.warning("Registration validation failed", errors=e.errors(include_input=False))
        raise ValidationError.from_pydantic(e) from e


def _run(coro: Any) -> Any:
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def create_registration(ctx: ServiceContext, event: dict) -> dict:
    """Run the notification pipeline for a completed registration."""
    registration = _parse_registration(_parse_body(event))

    logger.info(
        "Registration received",
        visitor_email=registration.email,
        host_id=registration.host_id,
        has_photo=bool(registration.photo_blob),
    )

    result = _run(ctx.pipeline.process_visitor_registration(registration))
    return pipeline_result(result)


def retry_registration(ctx: ServiceContext, event: dict) -> dict:
    """Re-run the failed steps of an earlier pipeline result."""
    body = _parse_body(event)
    registration = _parse_registration(body.get("registration"))

    try:
        previous = NotificationPipelineResult.model_validate(body.get("result"))
    except PydanticValidationError as e:
        logger.warning("Pipeline result validation failed", errors=e.errors(include_input=False))
        raise ValidationError.from_pydantic(e) from e

    logger.info(
        "Retry requested",
        visitor_email=registration.email,
        failed_steps=previous.failed_steps,
        record_id=previous.monday_record_id,
    )

    result = _run(ctx.pipeline.retry_failed_steps(previous, registration))
    return pipeline_result(result)


def get_health(ctx: ServiceContext) -> dict:
    """Service health from circuit breaker states."""
    return success({
        "health": ctx.recovery.check_service_health(),
        "services": ctx.recovery.get_service_status(),
    })
