"""Base Pydantic model and shared helpers."""

from datetime import datetime, timezone

from pydantic import BaseModel as PydanticBaseModel, ConfigDict
from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


class BaseModel(PydanticBaseModel):
    """Base model for kiosk payloads.

    Enums are stored as their values so models dump straight to JSON.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        validate_assignment=True,
    )
