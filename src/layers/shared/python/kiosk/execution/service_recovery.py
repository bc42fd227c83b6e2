"""Per-service recovery: circuit breaker around a tuned retry policy.

Each named downstream service gets its own circuit breaker and retry
settings. A call flows breaker → retry policy → operation, so a whole
retried call counts as one success or failure for the breaker.
"""

from typing import Any, Awaitable, Callable, TypeVar

import structlog

from kiosk.execution.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from kiosk.execution.retry_policy import RetryConfig, RetryPolicy

logger = structlog.get_logger()

T = TypeVar("T")

EMAIL_SERVICE = "email"
MONDAY_SERVICE = "monday"
CHAT_SERVICE = "chat"


def _excluding(*patterns: str) -> Callable[[Exception], bool]:
    """Build a retry condition that retries any error not mentioning a pattern."""

    def condition(error: Exception) -> bool:
        message = str(error).lower()
        return not any(pattern in message for pattern in patterns)

    return condition


SERVICE_RETRY_CONFIGS: dict[str, RetryConfig] = {
    EMAIL_SERVICE: RetryConfig(
        max_retries=2,
        base_delay=2.0,
        retry_condition=_excluding("authentication", "unauthorized"),
    ),
    MONDAY_SERVICE: RetryConfig(
        max_retries=3,
        base_delay=1.0,
        retry_condition=_excluding("rate limit", "429"),
    ),
    CHAT_SERVICE: RetryConfig(
        max_retries=2,
        base_delay=1.5,
        retry_condition=_excluding("webhook", "400"),
    ),
}

_HEALTH_BY_STATE = {
    CircuitState.CLOSED: "healthy",
    CircuitState.HALF_OPEN: "degraded",
    CircuitState.OPEN: "unhealthy",
}


class ServiceRecovery:
    """Routes service calls through per-service breakers and retry policies.

    One instance lives in the service context and is shared by every
    collaborator, so breaker state persists across pipeline runs.
    """

    def __init__(
        self,
        retry_configs: dict[str, RetryConfig] | None = None,
        breaker_config: CircuitBreakerConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.retry_configs = dict(SERVICE_RETRY_CONFIGS)
        if retry_configs:
            self.retry_configs.update(retry_configs)

        self.breaker_config = breaker_config or CircuitBreakerConfig()
        self._sleep = sleep
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self.logger = logger.bind(service="service_recovery")

    def get_circuit_breaker(self, service_name: str) -> CircuitBreaker:
        """Get or lazily create the breaker for a service."""
        breaker = self._breakers.get(service_name)
        if breaker is None:
            kwargs: dict[str, Any] = {"config": self.breaker_config}
            if self._clock is not None:
                kwargs["clock"] = self._clock
            breaker = self._breakers.setdefault(service_name, CircuitBreaker(service_name, **kwargs))
        return breaker

    def _retry_policy(self, service_name: str) -> RetryPolicy:
        config = self.retry_configs.get(service_name, RetryConfig())
        if self._sleep is not None:
            return RetryPolicy(config, sleep=self._sleep)
        return RetryPolicy(config)

    async def execute(
        self,
        service_name: str,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        """Run an operation under the named service's breaker and retry policy.

        Raises:
            CircuitBreakerError: If the service's circuit is open.
            Exception: The operation's last error once retries are exhausted.
        """
        breaker = self.get_circuit_breaker(service_name)
        policy = self._retry_policy(service_name)

        async def _with_retry() -> T:
            return await policy.execute(operation, context={"target_service": service_name})

        try:
            return await breaker.execute(_with_retry)
        except Exception as e:
            self.logger.warning(
                "Service call failed",
                target_service=service_name,
                error=str(e),
                circuit_state=breaker.state.value,
            )
            raise

    async def execute_email_service(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await self.execute(EMAIL_SERVICE, operation)

    async def execute_monday_service(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await self.execute(MONDAY_SERVICE, operation)

    async def execute_chat_service(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await self.execute(CHAT_SERVICE, operation)

    def get_service_status(self) -> dict[str, dict[str, Any]]:
        """State, failure count and last failure time of every known breaker."""
        return {name: breaker.get_state() for name, breaker in self._breakers.items()}

    def check_service_health(self) -> dict[str, Any]:
        """Summarize service health from breaker states.

        Returns:
            Dict with ``overall`` (healthy/degraded/unhealthy) and per-service
            health under ``services``. With no breakers created yet the
            overall status is healthy.
        """
        services = {
            name: _HEALTH_BY_STATE[breaker.state]
            for name, breaker in self._breakers.items()
        }

        healthy = sum(1 for status in services.values() if status == "healthy")
        total = len(services)

        if healthy == total:
            overall = "healthy"
        elif healthy > total / 2:
            overall = "degraded"
        else:
            overall = "unhealthy"

        return {"overall": overall, "services": services}

    def reset_circuit(self, service_name: str) -> None:
        """Reset a service's breaker to CLOSED."""
        breaker = self._breakers.get(service_name)
        if breaker is not None:
            breaker.reset()
