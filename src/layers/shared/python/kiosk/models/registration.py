"""Visitor registration snapshot handed to the notification pipeline."""

import base64
import binascii
from typing import Any

from pydantic import (
    BaseModel as PydanticBaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

# Payload keys holding base64 encoded binary content
_BLOB_FIELDS = ("photo_blob", "signature_blob", "pdf_blob")


class VisitorRegistration(PydanticBaseModel):
    """Completed kiosk registration.

    Immutable: the pipeline reads it but never changes it.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    # Personal info
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)

    # Organization
    company_name: str = Field(..., min_length=1, max_length=200)
    position: str | None = Field(None, max_length=200)

    # Contact
    email: EmailStr

    # Host
    host_id: str = Field(..., min_length=1)
    host_name: str = ""
    host_email: EmailStr

    # Photo
    photo_blob: bytes | None = None
    photo_url: str | None = None
    biometric_consent: bool = False

    # NDA
    signature_blob: bytes | None = None
    signature: str | None = Field(None, description="Signature as a data URL")
    nda_accepted: bool
    pdf_blob: bytes | None = None
    pdf_filename: str | None = None

    @field_validator("first_name", "last_name", "company_name", "host_id", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("email", "host_email", mode="before")
    @classmethod
    def normalize_email(cls, v: Any) -> Any:
        """Normalize email to lowercase for consistent lookups."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator(*_BLOB_FIELDS, mode="before")
    @classmethod
    def decode_blob(cls, v: Any) -> Any:
        """Binary fields arrive base64 encoded in JSON bodies."""
        if isinstance(v, str):
            if not v:
                return None
            try:
                return base64.b64decode(v, validate=True)
            except binascii.Error as e:
                raise ValueError("Invalid base64 content") from e
        return v

    @field_validator("nda_accepted")
    @classmethod
    def require_nda(cls, v: bool) -> bool:
        if not v:
            raise ValueError("NDA acceptance is required")
        return v

    @model_validator(mode="after")
    def require_biometric_consent(self) -> "VisitorRegistration":
        """A captured photo needs the visitor's biometric consent."""
        if (self.photo_blob or self.photo_url) and not self.biometric_consent:
            raise ValueError("Biometric consent is required")
        return self

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "VisitorRegistration":
        """Build a registration from a JSON request body.

        Binary fields arrive base64 encoded. Raises pydantic's ValidationError
        for invalid fields, including undecodable base64.
        """
        return cls.model_validate(payload)

    def to_payload(self) -> dict[str, Any]:
        """Inverse of from_payload: JSON-safe dict with base64 blobs."""
        data = self.model_dump(exclude=set(_BLOB_FIELDS))
        for key in _BLOB_FIELDS:
            value = getattr(self, key)
            data[key] = base64.b64encode(value).decode("ascii") if value else None
        return data

