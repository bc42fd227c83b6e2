"""Pytest configuration and fixtures."""

import base64
import io
import os

import pytest
from PIL import Image

# Set environment variables before imports
os.environ["STAGE"] = "test"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["KIOSK_USE_MOCK_SERVICES"] = "true"


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def clock():
    """A fake clock starting at t=1000s."""
    return FakeClock()


@pytest.fixture
def no_sleep():
    """Sleep replacement that returns immediately."""
    return RecordingSleep()


@pytest.fixture
def recovery(no_sleep, clock):
    """Service recovery that never actually sleeps."""
    from kiosk.execution.service_recovery import ServiceRecovery

    return ServiceRecovery(sleep=no_sleep, clock=clock)


def make_image_bytes(fmt: str = "JPEG", size: tuple[int, int] = (64, 48), color: str = "red") -> bytes:
    """Encode a solid-color image."""
    output = io.BytesIO()
    Image.new("RGB", size, color).save(output, format=fmt)
    return output.getvalue()


@pytest.fixture
def image_factory():
    """Factory for encoded test images."""
    return make_image_bytes


@pytest.fixture
def photo_bytes():
    """A small JPEG photo."""
    return make_image_bytes("JPEG", (1600, 1200))


@pytest.fixture
def signature_bytes():
    """A small PNG signature."""
    return make_image_bytes("PNG", (300, 100), "white")


@pytest.fixture
def registration_payload(photo_bytes, signature_bytes):
    """JSON body of a completed registration."""
    return {
        "first_name": "Jane",
        "last_name": "Doe",
        "company_name": "Acme Films",
        "position": "Producer",
        "email": "Jane.Doe@Example.com",
        "host_id": "1",
        "host_name": "Sarah Johnson",
        "host_email": "sarah@sqla.com",
        "photo_blob": base64.b64encode(photo_bytes).decode("ascii"),
        "biometric_consent": True,
        "signature_blob": base64.b64encode(signature_bytes).decode("ascii"),
        "nda_accepted": True,
    }


@pytest.fixture
def sample_registration(registration_payload):
    """A completed registration with photo and signature."""
    from kiosk.models.registration import VisitorRegistration

    return VisitorRegistration.from_payload(registration_payload)


@pytest.fixture
def bare_registration():
    """A completed registration without any files."""
    from kiosk.models.registration import VisitorRegistration

    return VisitorRegistration(
        first_name="John",
        last_name="Smith",
        company_name="Globex",
        email="john.smith@example.com",
        host_id="2",
        host_name="Mike Davis",
        host_email="mike@sqla.com",
        nda_accepted=True,
    )


@pytest.fixture
def mock_settings():
    """Settings forcing mock collaborators and instant step retries."""
    from kiosk.config import KioskSettings

    return KioskSettings(
        stage="test",
        use_mock_services=True,
        pipeline_retry_delay=0.0,
        pipeline_timeout=5.0,
    )


@pytest.fixture
def kiosk_context(mock_settings, recovery):
    """Service context wired to mock services."""
    from kiosk.services.context import build_service_context

    return build_service_context(mock_settings, recovery=recovery)


@pytest.fixture
def api_gateway_event():
    """Create a sample API Gateway event."""
    def _create_event(
        method: str = "GET",
        path: str = "/",
        path_params: dict = None,
        query_params: dict = None,
        body: dict = None,
    ):
        return {
            "httpMethod": method,
            "path": path,
            "pathParameters": path_params or {},
            "queryStringParameters": query_params or {},
            "body": body if isinstance(body, str) else (
                __import__("json").dumps(body) if body else None
            ),
            "headers": {
                "Content-Type": "application/json",
            },
            "requestContext": {},
        }

    return _create_event


class LambdaContext:
    """Mock Lambda context."""

    def __init__(self):
        self.function_name = "test-function"
        self.memory_limit_in_mb = 128
        self.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789:function:test"
        self.aws_request_id = "test-request-id"

    def get_remaining_time_in_millis(self):
        return 30000


@pytest.fixture
def lambda_context():
    """Create a mock Lambda context."""
    return LambdaContext()
