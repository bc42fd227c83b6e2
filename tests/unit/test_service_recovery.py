"""Tests for per-service recovery (breaker + retry)."""

import pytest

from kiosk.execution.circuit_breaker import CircuitBreakerConfig, CircuitBreakerError, CircuitState
from kiosk.execution.retry_policy import RetryConfig
from kiosk.execution.service_recovery import SERVICE_RETRY_CONFIGS, ServiceRecovery
from kiosk.services.email_service import EmailError
from kiosk.utils.exceptions import ExternalServiceError, RateLimitError


class Counter:
    """Async operation that always raises the given error."""

    def __init__(self, error: Exception):
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        raise self.error


class TestServiceRetryConfigs:
    """Per-service tuning."""

    def test_service_settings(self):
        """Each service carries its own retry budget and base delay."""
        assert SERVICE_RETRY_CONFIGS["email"].max_retries == 2
        assert SERVICE_RETRY_CONFIGS["email"].base_delay == 2.0
        assert SERVICE_RETRY_CONFIGS["monday"].max_retries == 3
        assert SERVICE_RETRY_CONFIGS["monday"].base_delay == 1.0
        assert SERVICE_RETRY_CONFIGS["chat"].max_retries == 2
        assert SERVICE_RETRY_CONFIGS["chat"].base_delay == 1.5

    @pytest.mark.parametrize("service,message", [
        ("email", "network authentication failed"),
        ("email", "fetch unauthorized"),
        ("monday", "Monday.com rate limit exceeded"),
        ("monday", "HTTP 429 network"),
        ("chat", "Google Chat webhook error: HTTP 503"),
        ("chat", "HTTP 400 network"),
    ])
    def test_excluded_errors_are_not_retried(self, service, message):
        """Service-specific exclusions refuse the retry even for network errors."""
        assert SERVICE_RETRY_CONFIGS[service].retry_condition(Exception(message)) is False

    @pytest.mark.parametrize("message", [
        "network error: fetch failed",
        "Monday.com GraphQL error: Internal item lock",
        "Failed to send email: Maximum sending rate exceeded.",
        "something unexpected",
    ])
    def test_other_errors_are_retried(self, message):
        """Anything outside a service's exclusions is retried, not just network errors."""
        for config in SERVICE_RETRY_CONFIGS.values():
            assert config.retry_condition(Exception(message)) is True


class TestServiceRecovery:
    """Tests for ServiceRecovery.execute and health reporting."""

    @pytest.mark.asyncio
    async def test_monday_retries_network_errors(self, recovery, no_sleep):
        """Monday gets 4 attempts with delays 1, 2, 4."""
        op = Counter(Exception("network error: fetch failed"))

        with pytest.raises(Exception, match="fetch failed"):
            await recovery.execute_monday_service(op)

        assert op.calls == 4
        assert no_sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_monday_retries_graphql_errors(self, recovery, no_sleep):
        """Non-network record store errors use the full monday budget."""
        op = Counter(ExternalServiceError("monday", "Monday.com GraphQL error: Internal item lock"))

        with pytest.raises(ExternalServiceError):
            await recovery.execute_monday_service(op)

        assert op.calls == SERVICE_RETRY_CONFIGS["monday"].max_retries + 1
        assert no_sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_email_retries_provider_errors(self, recovery, no_sleep):
        """A throttled send is retried with the email budget."""
        op = Counter(EmailError("Failed to send email: Maximum sending rate exceeded.", code="Throttling"))

        with pytest.raises(EmailError):
            await recovery.execute_email_service(op)

        assert op.calls == 3

    @pytest.mark.asyncio
    async def test_monday_rate_limit_not_retried(self, recovery):
        """Rate limit errors fail on the first attempt."""
        op = Counter(RateLimitError("Monday.com rate limit exceeded"))

        with pytest.raises(RateLimitError):
            await recovery.execute_monday_service(op)

        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_email_uses_email_budget(self, recovery, no_sleep):
        """Email gets 3 attempts with delays 2, 4."""
        op = Counter(Exception("timeout"))

        with pytest.raises(Exception):
            await recovery.execute_email_service(op)

        assert op.calls == 3
        assert no_sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_retried_call_counts_once_for_breaker(self, recovery):
        """A whole retried call is a single breaker failure."""
        await _fail_chat(recovery)

        status = recovery.get_service_status()
        assert status["chat"]["failures"] == 1
        assert status["chat"]["state"] == "CLOSED"

    @pytest.mark.asyncio
    async def test_breaker_opens_and_rejects(self, no_sleep, clock):
        """Once open, the service rejects calls without running them."""
        recovery = ServiceRecovery(
            breaker_config=CircuitBreakerConfig(failure_threshold=2, reset_timeout=60.0),
            sleep=no_sleep,
            clock=clock,
        )
        await _fail_chat(recovery)
        await _fail_chat(recovery)

        op = Counter(Exception("never raised"))
        with pytest.raises(CircuitBreakerError):
            await recovery.execute_chat_service(op)
        assert op.calls == 0

        recovery.reset_circuit("chat")
        assert recovery.get_circuit_breaker("chat").state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_custom_retry_config_override(self, no_sleep):
        """Configs passed in replace the defaults for that service only."""
        recovery = ServiceRecovery(
            retry_configs={"monday": RetryConfig(max_retries=0)},
            sleep=no_sleep,
        )
        op = Counter(Exception("network"))

        with pytest.raises(Exception):
            await recovery.execute_monday_service(op)

        assert op.calls == 1
        assert recovery.retry_configs["email"].max_retries == 2

    def test_breakers_are_created_lazily(self, recovery):
        """No breakers exist until a service is used."""
        assert recovery.get_service_status() == {}
        assert recovery.check_service_health() == {"overall": "healthy", "services": {}}

        first = recovery.get_circuit_breaker("email")
        assert recovery.get_circuit_breaker("email") is first


class TestServiceHealth:
    """Aggregate health from breaker states."""

    def _recovery_with(self, states: dict[str, CircuitState]) -> ServiceRecovery:
        recovery = ServiceRecovery()
        for name, state in states.items():
            recovery.get_circuit_breaker(name).state = state
        return recovery

    def test_all_closed_is_healthy(self):
        recovery = self._recovery_with({
            "email": CircuitState.CLOSED,
            "monday": CircuitState.CLOSED,
            "chat": CircuitState.CLOSED,
        })

        assert recovery.check_service_health()["overall"] == "healthy"

    def test_majority_healthy_is_degraded(self):
        """One open breaker out of three is degraded."""
        recovery = self._recovery_with({
            "email": CircuitState.CLOSED,
            "monday": CircuitState.OPEN,
            "chat": CircuitState.CLOSED,
        })

        health = recovery.check_service_health()
        assert health["overall"] == "degraded"
        assert health["services"]["monday"] == "unhealthy"

    def test_half_healthy_or_less_is_unhealthy(self):
        """Half-open breakers do not count as healthy."""
        recovery = self._recovery_with({
            "email": CircuitState.HALF_OPEN,
            "monday": CircuitState.OPEN,
            "chat": CircuitState.CLOSED,
        })

        health = recovery.check_service_health()
        assert health["overall"] == "unhealthy"
        assert health["services"]["email"] == "degraded"

    def test_two_services_one_down_is_unhealthy(self):
        """Exactly half healthy is not a majority."""
        recovery = self._recovery_with({
            "email": CircuitState.CLOSED,
            "chat": CircuitState.OPEN,
        })

        assert recovery.check_service_health()["overall"] == "unhealthy"


async def _fail_chat(recovery: ServiceRecovery) -> None:
    with pytest.raises(Exception):
        await recovery.execute_chat_service(Counter(Exception("network error")))
