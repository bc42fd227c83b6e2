"""Retry policy with exponential backoff.

Wraps an async operation in bounded retries. Between attempts the policy
sleeps ``min(base_delay * backoff_multiplier ** attempt, max_delay)`` seconds,
where ``attempt`` is the 0-based index of the attempt that just failed.

Usage:
    policy = RetryPolicy(RetryConfig(max_retries=2, base_delay=2.0))

    async def send():
        return await email_client.send(...)

    result = await policy.execute(send)
"""

import asyncio
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, TypeVar

import httpx
import structlog

from kiosk.utils.exceptions import HttpStatusError, NetworkError

logger = structlog.get_logger()

T = TypeVar("T")

NETWORK_TIMEOUT_SECONDS = 15.0

# Message fragments that mark an error as worth retrying
RETRYABLE_ERROR_PATTERNS = [
    "fetch",
    "network",
    "timeout",
    "500",
    "502",
    "503",
]


def default_retry_condition(error: Exception) -> bool:
    """Retry on network errors, timeouts, and 5xx status codes."""
    message = str(error).lower()
    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return True
    return any(pattern in message for pattern in RETRYABLE_ERROR_PATTERNS)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay: float = 1.0  # Base delay in seconds
    max_delay: float = 10.0  # Maximum delay cap
    backoff_multiplier: float = 2.0

    # Decides whether a failure is retryable; None retries everything
    retry_condition: Callable[[Exception], bool] | None = default_retry_condition

    def merge(self, **overrides: Any) -> "RetryConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **overrides)


@dataclass
class RetryMetrics:
    """Metrics for retry operations."""

    total_attempts: int = 0
    successful_attempts: int = 0
    failed_attempts: int = 0
    total_delay_seconds: float = 0.0
    delays: list[float] = field(default_factory=list)


class RetryPolicy:
    """Bounded retry with exponential backoff.

    Example:
        policy = RetryPolicy(RetryConfig(max_retries=3, base_delay=1.0))
        value = await policy.execute(fetch_staff)

    The last error is raised once the retry budget is spent or the retry
    condition rejects the error.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize retry policy.

        Args:
            config: Retry configuration.
            sleep: Coroutine used to wait between attempts.
        """
        self.config = config or RetryConfig()
        self.metrics = RetryMetrics()
        self._sleep = sleep
        self.logger = logger.bind(service="retry_policy")

    async def execute(
        self,
        func: Callable[[], Awaitable[T]],
        context: dict[str, Any] | None = None,
    ) -> T:
        """Execute an async function with retry logic.

        Args:
            func: Zero-argument coroutine function to execute.
            context: Optional context for logging.

        Returns:
            The function's return value.

        Raises:
            Exception: The last error when retries are exhausted or the
                error is not retryable.
        """
        max_attempts = self.config.max_retries + 1

        for attempt in range(max_attempts):
            self.metrics.total_attempts += 1

            try:
                result = await func()
            except Exception as e:
                is_last = attempt == self.config.max_retries
                retryable = self._should_retry(e)

                if is_last or not retryable:
                    self.metrics.failed_attempts += 1
                    self.logger.warning(
                        "Operation failed permanently" if not retryable else "Operation failed after max retries",
                        error=str(e),
                        attempts=attempt + 1,
                        max_attempts=max_attempts,
                        **(context or {}),
                    )
                    raise

                delay = self.calculate_delay(attempt)
                self.metrics.total_delay_seconds += delay
                self.metrics.delays.append(delay)

                self.logger.info(
                    "Retrying operation",
                    error=str(e),
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                    next_delay=delay,
                    **(context or {}),
                )

                await self._sleep(delay)
                continue

            self.metrics.successful_attempts += 1
            if attempt > 0:
                self.logger.debug(
                    "Operation succeeded after retry",
                    attempts=attempt + 1,
                    **(context or {}),
                )
            return result

        # The loop always returns or raises
        raise RuntimeError("Retry loop exited without a result")

    def _should_retry(self, error: Exception) -> bool:
        """Apply the configured retry condition."""
        if self.config.retry_condition is None:
            return True
        return self.config.retry_condition(error)

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay before the next attempt.

        Args:
            attempt: 0-based index of the attempt that failed.

        Returns:
            Delay in seconds.
        """
        delay = self.config.base_delay * (self.config.backoff_multiplier ** attempt)
        return min(delay, self.config.max_delay)

    def get_metrics(self) -> dict[str, Any]:
        """Get retry metrics."""
        return {
            "total_attempts": self.metrics.total_attempts,
            "successful_attempts": self.metrics.successful_attempts,
            "failed_attempts": self.metrics.failed_attempts,
            "total_delay_seconds": self.metrics.total_delay_seconds,
        }


async def fetch_with_retry(
    url: str,
    method: str = "GET",
    config: RetryConfig | None = None,
    timeout: float = NETWORK_TIMEOUT_SECONDS,
    service: str = "http",
    transport: httpx.AsyncBaseTransport | None = None,
    **request_kwargs: Any,
) -> httpx.Response:
    """Perform an HTTP request with a timeout and retry on failure.

    Each attempt gets its own timeout. A non-2xx response raises
    HttpStatusError carrying the status, so 5xx responses are retried by
    the default retry condition while 4xx responses are not.

    Args:
        url: Request URL.
        method: HTTP method.
        config: Retry configuration.
        timeout: Per-attempt timeout in seconds.
        service: Service name used in errors and logs.
        transport: Optional httpx transport (tests).
        **request_kwargs: Passed to ``httpx.AsyncClient.request``.

    Returns:
        The successful response.
    """

    async def _attempt() -> httpx.Response:
        return await request_once(
            url,
            method=method,
            timeout=timeout,
            service=service,
            transport=transport,
            **request_kwargs,
        )

    return await RetryPolicy(config).execute(_attempt, context={"url": url, "method": method})


async def request_once(
    url: str,
    method: str = "GET",
    timeout: float = NETWORK_TIMEOUT_SECONDS,
    service: str = "http",
    transport: httpx.AsyncBaseTransport | None = None,
    error_prefix: str | None = None,
    **request_kwargs: Any,
) -> httpx.Response:
    """Perform a single HTTP request, raising on timeouts and non-2xx responses.

    Raises:
        NetworkError: On timeouts and transport failures.
        HttpStatusError: On non-2xx responses.
    """
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.request(method, url, **request_kwargs)
    except httpx.TimeoutException as e:
        raise NetworkError(service, f"Request timeout after {timeout}s") from e
    except httpx.TransportError as e:
        raise NetworkError(service, f"fetch failed: {e}") from e

    if not response.is_success:
        raise HttpStatusError(
            response.status_code,
            response.reason_phrase,
            service=service,
            prefix=error_prefix,
        )

    return response
