"""Staff directory API handler (kiosk host selection)."""

import asyncio
from typing import Any

import structlog

from kiosk.services.context import ServiceContext, build_service_context
from kiosk.utils.exceptions import KioskError
from kiosk.utils.responses import error, from_exception, method_not_allowed, not_found, success

logger = structlog.get_logger()

_context: ServiceContext | None = None


def get_context() -> ServiceContext:
    """Service context, built on first use and kept for the container's lifetime."""
    global _context
    if _context is None:
        _context = build_service_context()
    return _context


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle staff API requests.

    Routes:
        GET /staff
        GET /staff/{staff_id}
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path_params = event.get("pathParameters", {}) or {}
        staff_id = path_params.get("staff_id")

        if http_method != "GET":
            return method_not_allowed(["GET"])

        ctx = get_context()
        if staff_id:
            return get_staff_member(ctx, staff_id)
        return list_staff(ctx)

    except KioskError as e:
        logger.warning("Staff request failed", error=e.message, error_code=e.error_code)
        return from_exception(e)
    except Exception as e:
        logger.exception("Staff handler error", error=str(e))
        return error("Internal server error", 500)


def list_staff(ctx: ServiceContext) -> dict:
    """List staff members who can host visitors."""
    loop = asyncio.new_event_loop()
    try:
        staff = loop.run_until_complete(
            ctx.recovery.execute_monday_service(ctx.record_store.get_staff_directory)
        )
    finally:
        loop.close()

    return success({"items": [member.model_dump(mode="json") for member in staff]})


def get_staff_member(ctx: ServiceContext, staff_id: str) -> dict:
    """Get a single staff member by ID."""
    loop = asyncio.new_event_loop()
    try:
        member = loop.run_until_complete(
            ctx.recovery.execute_monday_service(lambda: ctx.record_store.find_staff_member(staff_id))
        )
    finally:
        loop.close()

    if member is None:
        return not_found("StaffMember", staff_id)

    return success(member.model_dump(mode="json"))
