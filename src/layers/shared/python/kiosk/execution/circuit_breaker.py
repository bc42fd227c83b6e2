"""Circuit breaker for outbound service calls.

Stops calling a service that keeps failing and probes it again after a
cool-down period.

States:
- CLOSED: Normal operation, calls pass through
- OPEN: Service is failing, calls are rejected immediately
- HALF_OPEN: Cool-down elapsed, the next call probes the service

Transitions:
- CLOSED → OPEN: After failure_threshold consecutive failures
- OPEN → HALF_OPEN: On the first call after reset_timeout seconds
- HALF_OPEN → CLOSED: On a successful probe
- HALF_OPEN → OPEN: On a failed probe
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass
class CircuitBreakerConfig:
    """Configuration for a circuit breaker."""

    failure_threshold: int = 5  # Failures before opening
    reset_timeout: float = 60.0  # Seconds before probing again


class CircuitBreakerError(Exception):
    """Raised when the circuit is open and the call is rejected."""

    def __init__(self, name: str = "", state: CircuitState = CircuitState.OPEN):
        self.name = name
        self.state = state
        super().__init__("Circuit breaker is OPEN - service unavailable")


class CircuitBreaker:
    """Per-service circuit breaker.

    Example:
        breaker = CircuitBreaker("monday")
        item = await breaker.execute(lambda: store.create_visitor_record(record))

    Counter updates and state transitions happen under a lock; the
    operation itself runs outside it.
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the circuit breaker.

        Args:
            name: Service name, used in logs.
            config: Thresholds and timeouts.
            clock: Returns the current time in seconds.
        """
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self.state = CircuitState.CLOSED
        self.failures = 0
        self.last_failure_time: float | None = None

        self._clock = clock
        self._lock = threading.Lock()
        self.logger = logger.bind(service="circuit_breaker", circuit=name)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run the operation if the circuit allows it.

        Raises:
            CircuitBreakerError: If the circuit is open. The operation is not run.
            Exception: Whatever the operation raises.
        """
        self._before_call()

        try:
            result = await operation()
        except Exception:
            self._on_failure()
            raise

        self._on_success()
        return result

    def _before_call(self) -> None:
        with self._lock:
            if self.state != CircuitState.OPEN:
                return

            elapsed = self._clock() - (self.last_failure_time or 0.0)
            if elapsed >= self.config.reset_timeout:
                self._transition_to(CircuitState.HALF_OPEN)
                return

        self.logger.debug("Circuit breaker rejected call")
        raise CircuitBreakerError(self.name, CircuitState.OPEN)

    def _on_success(self) -> None:
        with self._lock:
            self.failures = 0
            if self.state != CircuitState.CLOSED:
                self._transition_to(CircuitState.CLOSED)

    def _on_failure(self) -> None:
        with self._lock:
            self.failures += 1
            self.last_failure_time = self._clock()

            if self.failures >= self.config.failure_threshold and self.state != CircuitState.OPEN:
                self._transition_to(CircuitState.OPEN)

    def _transition_to(self, new_state: CircuitState) -> None:
        """Change state. Caller holds the lock."""
        old_state = self.state
        self.state = new_state

        self.logger.info(
            "Circuit breaker state transition",
            old_state=old_state.value,
            new_state=new_state.value,
            failures=self.failures,
        )

    def reset(self) -> None:
        """Force the circuit back to CLOSED with no recorded failures."""
        with self._lock:
            self.state = CircuitState.CLOSED
            self.failures = 0
            self.last_failure_time = None

        self.logger.info("Circuit breaker manually reset")

    def get_state(self) -> dict[str, Any]:
        """Snapshot of the breaker's state."""
        with self._lock:
            return {
                "state": self.state.value,
                "failures": self.failures,
                "last_failure_time": self.last_failure_time,
            }
