"""Tests for the retry policy and HTTP retry helpers."""

import httpx
import pytest

from kiosk.execution.retry_policy import (
    RetryConfig,
    RetryPolicy,
    default_retry_condition,
    fetch_with_retry,
    request_once,
)
from kiosk.utils.exceptions import HttpStatusError, NetworkError


class Flaky:
    """Async operation that fails a set number of times before succeeding."""

    def __init__(self, failures: list[Exception], value: str = "ok"):
        self.failures = list(failures)
        self.value = value
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.value


class TestDefaultRetryCondition:
    """Tests for default_retry_condition."""

    @pytest.mark.parametrize("message", [
        "fetch failed",
        "Network unreachable",
        "Request TIMEOUT",
        "HTTP 500: Internal Server Error",
        "HTTP 502: Bad Gateway",
        "HTTP 503: Service Unavailable",
    ])
    def test_retryable_messages(self, message):
        """Network, timeout and 5xx messages are retryable."""
        assert default_retry_condition(Exception(message)) is True

    @pytest.mark.parametrize("message", [
        "HTTP 404: Not Found",
        "Invalid email address",
        "HTTP 401: Unauthorized",
    ])
    def test_non_retryable_messages(self, message):
        """Other failures are not retried."""
        assert default_retry_condition(Exception(message)) is False

    def test_timeout_error_type_is_retryable(self):
        """A TimeoutError with an empty message is still retryable."""
        assert default_retry_condition(TimeoutError()) is True


class TestRetryPolicy:
    """Tests for RetryPolicy.execute."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, no_sleep):
        """A successful call runs once without sleeping."""
        op = Flaky([])
        policy = RetryPolicy(RetryConfig(max_retries=3), sleep=no_sleep)

        assert await policy.execute(op) == "ok"
        assert op.calls == 1
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_retries_with_exponential_backoff(self, no_sleep):
        """Retryable failures back off base_delay * multiplier ** attempt."""
        op = Flaky([Exception("network error"), Exception("timeout")])
        policy = RetryPolicy(RetryConfig(max_retries=3, base_delay=1.0), sleep=no_sleep)

        assert await policy.execute(op) == "ok"
        assert op.calls == 3
        assert no_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_last_error(self, no_sleep):
        """After max_retries + 1 attempts the last error propagates."""
        op = Flaky([Exception("HTTP 503: first"), Exception("HTTP 503: second"), Exception("HTTP 503: third")])
        policy = RetryPolicy(RetryConfig(max_retries=2, base_delay=2.0), sleep=no_sleep)

        with pytest.raises(Exception, match="third"):
            await policy.execute(op)

        assert op.calls == 3
        assert no_sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_non_retryable_error_fails_immediately(self, no_sleep):
        """A failure rejected by the retry condition is raised on the first attempt."""
        op = Flaky([ValueError("Invalid input")])
        policy = RetryPolicy(RetryConfig(max_retries=3), sleep=no_sleep)

        with pytest.raises(ValueError):
            await policy.execute(op)

        assert op.calls == 1
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_no_condition_retries_everything(self, no_sleep):
        """With retry_condition=None every failure is retried."""
        op = Flaky([ValueError("anything")])
        policy = RetryPolicy(RetryConfig(max_retries=1, retry_condition=None), sleep=no_sleep)

        assert await policy.execute(op) == "ok"
        assert op.calls == 2

    @pytest.mark.asyncio
    async def test_zero_retries_runs_once(self, no_sleep):
        """max_retries=0 means a single attempt."""
        op = Flaky([Exception("network down")])
        policy = RetryPolicy(RetryConfig(max_retries=0), sleep=no_sleep)

        with pytest.raises(Exception, match="network down"):
            await policy.execute(op)

        assert op.calls == 1

    def test_delay_is_capped(self):
        """Delays never exceed max_delay."""
        policy = RetryPolicy(RetryConfig(base_delay=1.0, max_delay=5.0, backoff_multiplier=2.0))

        assert [policy.calculate_delay(a) for a in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    @pytest.mark.asyncio
    async def test_metrics(self, no_sleep):
        """Metrics count attempts and accumulated delay."""
        policy = RetryPolicy(RetryConfig(max_retries=2, base_delay=1.0), sleep=no_sleep)
        await policy.execute(Flaky([Exception("fetch failed")]))

        metrics = policy.get_metrics()
        assert metrics["total_attempts"] == 2
        assert metrics["successful_attempts"] == 1
        assert metrics["total_delay_seconds"] == 1.0

    def test_merge_overrides_fields(self):
        """merge returns a modified copy."""
        base = RetryConfig()
        merged = base.merge(max_retries=7)

        assert merged.max_retries == 7
        assert base.max_retries == 3


class TestHttpHelpers:
    """Tests for request_once and fetch_with_retry."""

    @pytest.mark.asyncio
    async def test_request_once_raises_status_error(self):
        """Non-2xx responses raise HttpStatusError with the status in the message."""
        transport = httpx.MockTransport(lambda request: httpx.Response(400))

        with pytest.raises(HttpStatusError) as exc_info:
            await request_once("https://hooks.example.com", transport=transport, error_prefix="Google Chat webhook error")

        assert exc_info.value.http_status == 400
        assert str(exc_info.value).startswith("Google Chat webhook error: HTTP 400")

    @pytest.mark.asyncio
    async def test_request_once_wraps_transport_errors(self):
        """Connection failures become NetworkError."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError, match="fetch failed"):
            await request_once("https://api.example.com", transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_request_once_wraps_timeouts(self):
        """Timeouts become NetworkError naming the timeout."""
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        with pytest.raises(NetworkError, match="Request timeout after 2.0s"):
            await request_once("https://api.example.com", timeout=2.0, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_fetch_with_retry_retries_server_errors(self):
        """5xx responses are retried until a success."""
        statuses = [503, 502, 200]
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(statuses[len(calls) - 1], json={"ok": True})

        response = await fetch_with_retry(
            "https://api.example.com/items",
            config=RetryConfig(max_retries=3, base_delay=0.0),
            transport=httpx.MockTransport(handler),
        )

        assert response.status_code == 200
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_fetch_with_retry_does_not_retry_client_errors(self):
        """4xx responses fail on the first attempt."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        with pytest.raises(HttpStatusError):
            await fetch_with_retry(
                "https://api.example.com/missing",
                config=RetryConfig(max_retries=3, base_delay=0.0),
                transport=httpx.MockTransport(handler),
            )

        assert len(calls) == 1
