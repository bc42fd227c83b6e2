"""Tests for environment configuration."""

import pytest
from pydantic import ValidationError

from kiosk.config import load_settings


class TestLoadSettings:
    """Tests for load_settings."""

    def test_defaults(self):
        settings = load_settings({})

        assert settings.stage == "dev"
        assert settings.is_dev is True
        assert settings.use_mock_services is False
        assert settings.monday.api_url == "https://api.monday.com/v2"
        assert settings.monday.api_version == "2024-01"
        assert settings.studio.wifi_network == "SQLA-Guest"
        assert settings.chat_webhook_url is None

        pipeline = settings.pipeline_config()
        assert pipeline.max_retries == 2
        assert pipeline.retry_delay == 1.0
        assert pipeline.timeout == 30.0
        assert pipeline.continue_on_failure is True

    def test_reads_environment(self):
        settings = load_settings({
            "STAGE": "prod",
            "KIOSK_USE_MOCK_SERVICES": "yes",
            "MONDAY_API_KEY": "key-123",
            "MONDAY_VISITORS_BOARD_ID": "987",
            "SES_FROM_EMAIL": "reception@sqla.com",
            "GOOGLE_CHAT_WEBHOOK": "https://chat.googleapis.com/v1/spaces/x/messages",
            "STUDIO_WIFI_NETWORK": "Studio-5G",
            "PIPELINE_MAX_RETRIES": "4",
            "PIPELINE_RETRY_DELAY": "0.5",
            "PIPELINE_CONTINUE_ON_FAILURE": "false",
        })

        assert settings.is_dev is False
        assert settings.use_mock_services is True
        assert settings.monday.api_key == "key-123"
        assert settings.monday.visitors_board_id == "987"
        assert settings.email.from_email == "reception@sqla.com"
        assert settings.studio.wifi_network == "Studio-5G"

        pipeline = settings.pipeline_config()
        assert pipeline.max_retries == 4
        assert pipeline.retry_delay == 0.5
        assert pipeline.continue_on_failure is False

    def test_empty_values_use_defaults(self):
        settings = load_settings({"STAGE": "", "PIPELINE_TIMEOUT": ""})

        assert settings.stage == "dev"
        assert settings.pipeline_timeout == 30.0

    def test_malformed_number_raises(self):
        with pytest.raises(ValidationError):
            load_settings({"PIPELINE_MAX_RETRIES": "many"})
