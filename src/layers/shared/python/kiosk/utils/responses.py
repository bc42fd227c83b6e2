"""API Gateway responses for the kiosk handlers.

Every response carries the kiosk CORS headers and a JSON body. Pipeline
results get their own shape so the kiosk can show per-step progress and
offer a retry without recounting steps itself.
"""

import json
import os
from datetime import datetime
from typing import Any

from pydantic import BaseModel as PydanticBaseModel

from kiosk.models.pipeline import NotificationPipelineResult, StepStatus
from kiosk.utils.exceptions import KioskError

# Kiosk frontend origin; localhost is allowed in dev
_ALLOWED_ORIGIN = os.environ.get("CORS_ALLOWED_ORIGIN", "https://kiosk.sqla.studio")
_STAGE = os.environ.get("STAGE", "dev")


def _get_cors_origin(request_origin: str | None = None) -> str:
    if _STAGE == "dev" and request_origin and request_origin.startswith("http://localhost:"):
        return request_origin
    return _ALLOWED_ORIGIN


def get_cors_headers(request_origin: str | None = None) -> dict:
    """CORS headers for the kiosk frontend (GET and POST only)."""
    return {
        "Access-Control-Allow-Origin": _get_cors_origin(request_origin),
        "Access-Control-Allow-Headers": "Content-Type,X-Api-Key",
        "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
        "Content-Type": "application/json",
    }


def _json_serializer(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, PydanticBaseModel):
        return obj.model_dump(mode="json")
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def _respond(status_code: int, body: Any, headers: dict | None = None) -> dict:
    return {
        "statusCode": status_code,
        "headers": {**get_cors_headers(), **(headers or {})},
        "body": json.dumps(body, default=_json_serializer),
    }


def success(data: Any, status_code: int = 200) -> dict:
    """Create a successful API response.

    Args:
        data: Response data (dict, list, or Pydantic model).
        status_code: HTTP status code (default 200).
    """
    if isinstance(data, PydanticBaseModel):
        data = data.model_dump(mode="json")
    return _respond(status_code, data)


def pipeline_result(result: NotificationPipelineResult) -> dict:
    """Respond with a pipeline run or retry pass.

    The body is the result itself plus ``summary`` (step counts by status)
    and ``retry_step_ids``, the failed steps a retry request would re-run.
    A run with failed steps is still a 200: the failures are step outcomes,
    not a request error.
    """
    body = result.model_dump(mode="json")
    body["summary"] = result.summary()
    body["retry_step_ids"] = [step.id for step in result.steps if step.status == StepStatus.FAILED]
    return _respond(200, body)


def error(
    message: str,
    status_code: int = 500,
    error_code: str | None = None,
    details: dict | None = None,
) -> dict:
    """Create an error API response.

    Args:
        message: Error message.
        status_code: HTTP status code.
        error_code: Machine-readable error code.
        details: Additional error details.
    """
    body: dict[str, Any] = {
        "error": True,
        "message": message,
    }
    if error_code:
        body["error_code"] = error_code
    if details:
        body["details"] = details
    return _respond(status_code, body)


def from_exception(exc: KioskError) -> dict:
    """Error response built from a KioskError's own status and payload."""
    return _respond(exc.status_code, exc.to_dict())


def classified_error(friendly: Any, status_code: int = 500) -> dict:
    """Error response for an unexpected failure.

    ``friendly`` is a UserFriendlyError; the kiosk shows its user message,
    quotes the error id to staff and offers a retry when ``can_retry`` is set.
    """
    return error(
        friendly.user_message,
        status_code,
        error_code="INTERNAL_ERROR",
        details={
            "error_id": friendly.error_id,
            "type": friendly.type,
            "can_retry": friendly.can_retry,
        },
    )


def validation_error(errors: list[dict]) -> dict:
    """400 response listing field errors."""
    return error(
        message="Validation failed",
        status_code=400,
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


def not_found(resource_type: str, resource_id: str) -> dict:
    """404 response for a missing resource."""
    return error(
        message=f"{resource_type} with ID '{resource_id}' not found",
        status_code=404,
        error_code="NOT_FOUND",
        details={"resource_type": resource_type, "resource_id": resource_id},
    )


def method_not_allowed(allowed: list[str]) -> dict:
    """405 response with an ``Allow`` header."""
    response = error("Method not allowed", 405, error_code="METHOD_NOT_ALLOWED")
    response["headers"]["Allow"] = ", ".join(allowed)
    return response
