"""Tests for the circuit breaker."""

import pytest

from kiosk.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
)


async def _fail():
    raise RuntimeError("HTTP 503: Service Unavailable")


async def _succeed():
    return "ok"


@pytest.fixture
def breaker(clock):
    """Breaker opening after 3 failures with a 60s reset timeout."""
    return CircuitBreaker(
        "monday",
        CircuitBreakerConfig(failure_threshold=3, reset_timeout=60.0),
        clock=clock,
    )


async def _trip(breaker: CircuitBreaker, times: int) -> None:
    for _ in range(times):
        with pytest.raises(RuntimeError):
            await breaker.execute(_fail)


class TestCircuitBreaker:
    """State machine tests."""

    @pytest.mark.asyncio
    async def test_starts_closed(self, breaker):
        """New breakers are closed and pass calls through."""
        assert breaker.state == CircuitState.CLOSED
        assert await breaker.execute(_succeed) == "ok"

    @pytest.mark.asyncio
    async def test_opens_at_threshold(self, breaker, clock):
        """The breaker opens on the failure that reaches the threshold."""
        await _trip(breaker, 2)
        assert breaker.state == CircuitState.CLOSED

        await _trip(breaker, 1)
        state = breaker.get_state()
        assert state["state"] == "OPEN"
        assert state["failures"] == 3
        assert state["last_failure_time"] == clock.now

    @pytest.mark.asyncio
    async def test_open_rejects_without_calling(self, breaker):
        """While open, calls are rejected and the operation never runs."""
        await _trip(breaker, 3)
        called = []

        async def operation():
            called.append(True)
            return "ok"

        with pytest.raises(CircuitBreakerError, match="Circuit breaker is OPEN - service unavailable"):
            await breaker.execute(operation)

        assert called == []

    @pytest.mark.asyncio
    async def test_stays_open_until_timeout_elapses(self, breaker, clock):
        """Just short of reset_timeout the call is still rejected."""
        await _trip(breaker, 3)
        clock.advance(59.9)

        with pytest.raises(CircuitBreakerError):
            await breaker.execute(_succeed)

    @pytest.mark.asyncio
    async def test_probes_once_timeout_has_elapsed(self, breaker, clock):
        """Exactly reset_timeout seconds after the last failure the call goes through."""
        await _trip(breaker, 3)
        clock.advance(60.0)

        assert await breaker.execute(_succeed) == "ok"
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_successful_probe_closes(self, breaker, clock):
        """After the timeout a successful call closes the breaker and clears failures."""
        await _trip(breaker, 3)
        clock.advance(61.0)

        assert await breaker.execute(_succeed) == "ok"
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failures == 0

    @pytest.mark.asyncio
    async def test_failed_probe_reopens(self, breaker, clock):
        """A failing probe sends the breaker back to open."""
        await _trip(breaker, 3)
        clock.advance(61.0)

        await _trip(breaker, 1)
        assert breaker.state == CircuitState.OPEN
        assert breaker.failures == 4

        with pytest.raises(CircuitBreakerError):
            await breaker.execute(_succeed)

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker):
        """A success while closed resets the consecutive failure count."""
        await _trip(breaker, 2)
        await breaker.execute(_succeed)
        await _trip(breaker, 2)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failures == 2

    @pytest.mark.asyncio
    async def test_manual_reset(self, breaker):
        """reset() closes the breaker and forgets failures."""
        await _trip(breaker, 3)
        breaker.reset()

        assert breaker.get_state() == {"state": "CLOSED", "failures": 0, "last_failure_time": None}
        assert await breaker.execute(_succeed) == "ok"
