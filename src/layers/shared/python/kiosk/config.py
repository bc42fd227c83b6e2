"""Kiosk configuration loaded from the Lambda environment."""

import os
from dataclasses import dataclass
from typing import Mapping

from pydantic import BaseModel, Field

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class PipelineConfig:
    """Configuration for the notification pipeline."""

    max_retries: int = 2
    retry_delay: float = 1.0  # Seconds between step attempts
    timeout: float = 30.0  # Seconds per step attempt
    continue_on_failure: bool = True


class MondaySettings(BaseModel):
    """Record store (Monday.com) settings."""

    api_key: str | None = None
    api_url: str = "https://api.monday.com/v2"
    file_api_url: str = "https://api.monday.com/v2/file"
    api_version: str = "2024-01"
    visitors_board_id: str = "visitors"
    staff_board_id: str = "staff"
    account_slug: str = "sqla-studio"


class EmailSettings(BaseModel):
    """Amazon SES sender settings."""

    from_email: str | None = None
    from_name: str = "SQLA Studio"
    configuration_set: str | None = None
    region: str = "us-east-1"


class StudioSettings(BaseModel):
    """Studio details used in visitor emails."""

    name: str = "SQLA Studio"
    address: str = "123 Studio Drive, Los Angeles, CA 90210"
    wifi_network: str = "SQLA-Guest"
    wifi_password: str = "StudioGuest2024"
    emergency_contact: str = "+1 (555) 123-4567"


class KioskSettings(BaseModel):
    """Top-level configuration model."""

    stage: str = "dev"
    use_mock_services: bool = False
    monday: MondaySettings = Field(default_factory=MondaySettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    chat_webhook_url: str | None = None
    studio: StudioSettings = Field(default_factory=StudioSettings)
    pipeline_max_retries: int = Field(2, ge=0)
    pipeline_retry_delay: float = Field(1.0, ge=0)
    pipeline_timeout: float = Field(30.0, gt=0)
    pipeline_continue_on_failure: bool = True

    @property
    def is_dev(self) -> bool:
        return self.stage == "dev"

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            max_retries=self.pipeline_max_retries,
            retry_delay=self.pipeline_retry_delay,
            timeout=self.pipeline_timeout,
            continue_on_failure=self.pipeline_continue_on_failure,
        )


def _flag(value: str | None, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def load_settings(environ: Mapping[str, str] | None = None) -> KioskSettings:
    """Load settings from environment variables.

    Args:
        environ: Mapping to read instead of ``os.environ``.

    Raises:
        pydantic.ValidationError: If a numeric variable is malformed.
    """
    env = os.environ if environ is None else environ

    def get(name: str, default: str | None = None) -> str | None:
        value = env.get(name)
        return value if value not in (None, "") else default

    monday = MondaySettings(
        api_key=get("MONDAY_API_KEY"),
        api_url=get("MONDAY_API_URL", MondaySettings.model_fields["api_url"].default),
        file_api_url=get("MONDAY_FILE_API_URL", MondaySettings.model_fields["file_api_url"].default),
        api_version=get("MONDAY_API_VERSION", MondaySettings.model_fields["api_version"].default),
        visitors_board_id=get("MONDAY_VISITORS_BOARD_ID", "visitors"),
        staff_board_id=get("MONDAY_STAFF_BOARD_ID", "staff"),
        account_slug=get("MONDAY_ACCOUNT_SLUG", "sqla-studio"),
    )

    email = EmailSettings(
        from_email=get("SES_FROM_EMAIL"),
        from_name=get("SES_FROM_NAME", "SQLA Studio"),
        configuration_set=get("SES_CONFIGURATION_SET"),
        region=get("AWS_REGION", "us-east-1"),
    )

    defaults = StudioSettings()
    studio = StudioSettings(
        name=get("STUDIO_NAME", defaults.name),
        address=get("STUDIO_ADDRESS", defaults.address),
        wifi_network=get("STUDIO_WIFI_NETWORK", defaults.wifi_network),
        wifi_password=get("STUDIO_WIFI_PASSWORD", defaults.wifi_password),
        emergency_contact=get("STUDIO_EMERGENCY_CONTACT", defaults.emergency_contact),
    )

    return KioskSettings(
        stage=get("STAGE", "dev"),
        use_mock_services=_flag(get("KIOSK_USE_MOCK_SERVICES")),
        monday=monday,
        email=email,
        chat_webhook_url=get("GOOGLE_CHAT_WEBHOOK"),
        studio=studio,
        pipeline_max_retries=get("PIPELINE_MAX_RETRIES", "2"),
        pipeline_retry_delay=get("PIPELINE_RETRY_DELAY", "1.0"),
        pipeline_timeout=get("PIPELINE_TIMEOUT", "30.0"),
        pipeline_continue_on_failure=_flag(get("PIPELINE_CONTINUE_ON_FAILURE"), default=True),
    )
